"""
Pydantic schemas for Investment API request / response serialisation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from unitvest.models.accrual_event import AccrualKind
from unitvest.models.investment import DEFAULT_CYCLE_LENGTH_DAYS, InvestmentStatus


def _money(v: Optional[Decimal]) -> Optional[float]:
    return float(v) if v is not None else None


class InvestmentPurchase(BaseModel):
    """Schema for ``POST /investments`` — buy units from the caller's balance."""

    principal: Decimal = Field(
        ...,
        gt=0,
        max_digits=20,
        decimal_places=2,
        description="Amount to invest; debited from the balance immediately",
        examples=[700.00],
    )
    cycle_length_days: int = Field(
        default=DEFAULT_CYCLE_LENGTH_DAYS,
        ge=1,
        le=365,
        description="Length of one accrual cycle in days",
    )


class AdminInvestmentCreate(InvestmentPurchase):
    """
    Schema for ``POST /admin/investments``.

    Admin-created investments start ``active`` and are not paid for from the
    owner's balance.
    """

    owner_id: UUID = Field(..., description="Profile that owns the investment")
    roi_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        max_digits=7,
        decimal_places=2,
        description="Percent per cycle; omit to use the owner's profile rate",
        examples=[10],
    )


class StatusOverride(BaseModel):
    """Schema for ``PUT /admin/investments/{id}/status``."""

    status: InvestmentStatus
    override_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        max_digits=20,
        decimal_places=2,
        description="Return to credit when forcing 'completed' (trusted as given)",
    )

    @model_validator(mode="after")
    def _check_target(self) -> "StatusOverride":
        if self.status == InvestmentStatus.PENDING:
            raise ValueError("status cannot be forced back to 'pending'")
        if self.override_amount is not None and self.status != InvestmentStatus.COMPLETED:
            raise ValueError("override_amount is only allowed when forcing 'completed'")
        return self


class InvestmentResponse(BaseModel):
    """Schema returned by investment endpoints."""

    id: UUID
    owner_id: UUID
    principal: Decimal
    roi_rate: Optional[Decimal] = None
    cycle_length_days: int
    cycle_start: Optional[datetime] = None
    cycle_end: Optional[datetime] = None
    status: InvestmentStatus
    funded_from_balance: bool
    created_at: datetime
    updated_at: datetime

    @field_serializer("principal", "roi_rate")
    @classmethod
    def serialize_decimal_as_number(cls, v: Optional[Decimal]) -> Optional[float]:
        """Serialize Decimal as a JSON number rather than pydantic's default string."""
        return _money(v)

    model_config = ConfigDict(from_attributes=True)


class CompletionResult(BaseModel):
    """Outcome of the manual completion path."""

    investment_id: UUID
    credited_amount: Decimal = Field(..., description="principal + accrual")
    accrual_amount: Decimal
    new_status: InvestmentStatus

    @field_serializer("credited_amount", "accrual_amount")
    @classmethod
    def serialize_decimal_as_number(cls, v: Decimal) -> float:
        return float(v)


class StatusOverrideResult(BaseModel):
    ok: bool = True
    investment: InvestmentResponse


class BulkActivateResult(BaseModel):
    activated: int


class AccrualEventResponse(BaseModel):
    """One ledger row."""

    id: UUID
    investment_id: UUID
    kind: AccrualKind
    roi_rate_applied: Optional[Decimal] = None
    amount_credited: Decimal
    principal_returned: Decimal
    cycle_start: Optional[datetime] = None
    cycle_end: Optional[datetime] = None
    computed_at: datetime

    @field_serializer("roi_rate_applied", "amount_credited", "principal_returned")
    @classmethod
    def serialize_decimal_as_number(cls, v: Optional[Decimal]) -> Optional[float]:
        return _money(v)

    model_config = ConfigDict(from_attributes=True)
