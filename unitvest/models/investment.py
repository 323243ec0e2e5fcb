"""
Investment domain model.

One unit purchase: a principal earning ``roi_rate`` percent per cycle of
``cycle_length_days``.  The current accrual window is
``[cycle_start, cycle_end)``; it only runs while the investment is
``active`` (or paused while ``suspended``).
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from unitvest.models.profile import Profile

DEFAULT_CYCLE_LENGTH_DAYS = 7


class InvestmentStatus(str, Enum):
    """Lifecycle states of an investment."""

    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    REJECTED = "rejected"


class Investment(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investments.

    Design notes:
    - ``ix_investments_status_cycle_end`` serves the sweeper query
      ``WHERE status = 'active' AND cycle_end <= now ORDER BY cycle_end``.
    - ``version`` is bumped by every lifecycle write; writers use it in a
      guarded ``UPDATE ... WHERE version = :seen`` so two racing accruals
      cannot both succeed.
    - ``roi_rate`` may be NULL, in which case the owner's
      ``weekly_roi_percentage`` is read at accrual time.
    """

    __tablename__ = "investments"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_investments_status_cycle_end", "status", "cycle_end"),
        CheckConstraint("principal > 0", name="ck_investments_principal_positive"),
        CheckConstraint(
            "cycle_length_days > 0", name="ck_investments_cycle_length_positive"
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
        ondelete="RESTRICT",
    )
    principal: Decimal = Field(max_digits=20, decimal_places=2)
    roi_rate: Optional[Decimal] = Field(default=None, max_digits=7, decimal_places=2)
    cycle_length_days: int = Field(default=DEFAULT_CYCLE_LENGTH_DAYS)
    cycle_start: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    cycle_end: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    status: InvestmentStatus = Field(default=InvestmentStatus.PENDING, index=True)
    funded_from_balance: bool = Field(default=False)
    version: int = Field(default=1, nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    owner: Optional["Profile"] = Relationship(back_populates="investments")

    def __repr__(self) -> str:
        return (
            f"<Investment id={self.id} owner={self.owner_id} "
            f"principal={self.principal} status={self.status.value}>"
        )
