"""
Pydantic schemas for the account view.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_serializer


class ProfileResponse(BaseModel):
    """Balance summary returned by ``GET /profiles/me``."""

    id: UUID
    name: str
    email: str
    is_admin: bool
    balance: Decimal
    total_roi: Decimal
    weekly_roi_percentage: Optional[Decimal] = None

    @field_serializer("balance", "total_roi", "weekly_roi_percentage")
    @classmethod
    def serialize_decimal_as_number(cls, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None

    model_config = ConfigDict(from_attributes=True)
