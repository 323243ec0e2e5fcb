"""
Profile domain model.

The account side of the engine: every investment belongs to a profile, and
every accrual, completion or refund lands on the profile's ``balance``.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from unitvest.models.investment import Investment


class Profile(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for account profiles.

    - ``balance`` is liquid, spendable funds.
    - ``total_roi`` is the lifetime return counter; it is only ever credited.
    - ``weekly_roi_percentage`` is the owner-level fallback rate used when an
      investment carries no rate of its own.

    Balance columns are only ever changed with relative ``UPDATE`` statements
    (``balance = balance + :delta``) issued by :class:`ProfileRepository`.
    """

    __tablename__ = "profiles"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_profiles_balance_non_negative"),
        CheckConstraint("total_roi >= 0", name="ck_profiles_total_roi_non_negative"),
        CheckConstraint("length(name) > 0", name="ck_profiles_name_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    email: str = Field(unique=True, index=True, max_length=320)
    is_admin: bool = Field(default=False)
    balance: Decimal = Field(default=Decimal("0.00"), max_digits=20, decimal_places=2)
    total_roi: Decimal = Field(default=Decimal("0.00"), max_digits=20, decimal_places=2)
    weekly_roi_percentage: Optional[Decimal] = Field(
        default=None, max_digits=7, decimal_places=2
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    investments: List["Investment"] = Relationship(back_populates="owner")

    def __repr__(self) -> str:
        return f"<Profile id={self.id} name='{self.name}' balance={self.balance}>"
