"""
Accrual ledger model.

Every credit the engine makes to a balance is recorded here, in the same
transaction as the credit itself.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class AccrualKind(str, Enum):
    """Which path produced the credit."""

    RENEWAL = "renewal"  # maturity sweep, investment re-armed
    COMPLETION = "completion"  # manual completion, principal returned
    OVERRIDE = "override"  # admin-supplied amount on a forced completion


class AccrualEvent(SQLModel, table=True):
    """
    One "return applied" occurrence.

    ``uq_accrual_events_investment_cycle_end`` guarantees a window is closed
    out at most once: a second sweep (or a sweep racing a manual completion)
    hits the constraint instead of crediting the balance twice.
    """

    __tablename__ = "accrual_events"  # type: ignore[assignment]

    __table_args__ = (
        UniqueConstraint(
            "investment_id", "cycle_end", name="uq_accrual_events_investment_cycle_end"
        ),
        CheckConstraint("amount_credited >= 0", name="ck_accrual_events_amount_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investment_id: uuid.UUID = Field(foreign_key="investments.id", index=True)
    owner_id: uuid.UUID = Field(index=True)
    kind: AccrualKind
    roi_rate_applied: Optional[Decimal] = Field(default=None, max_digits=7, decimal_places=2)
    amount_credited: Decimal = Field(max_digits=20, decimal_places=2)
    principal_returned: Decimal = Field(
        default=Decimal("0.00"), max_digits=20, decimal_places=2
    )
    cycle_start: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    cycle_end: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    computed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AccrualEvent id={self.id} investment={self.investment_id} "
            f"kind={self.kind.value} amount={self.amount_credited}>"
        )
