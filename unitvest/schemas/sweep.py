"""
Result schema for the maturity sweep.
"""

from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from unitvest.core.exceptions import PartialBatchFailure


class SweepError(BaseModel):
    investment_id: UUID
    reason: str


class SweepResult(BaseModel):
    """Aggregate outcome of one ``run_maturity_sweep()`` call."""

    processed: int = Field(0, description="Investments credited and renewed")
    failed: int = Field(0, description="Investments left untouched because of an error")
    skipped: int = Field(
        0, description="Investments settled concurrently by another run or a completion"
    )
    errors: List[SweepError] = Field(default_factory=list)

    def record_failure(self, investment_id: UUID, exc: BaseException) -> None:
        self.failed += 1
        reason = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        self.errors.append(SweepError(investment_id=investment_id, reason=reason))

    def raise_for_failures(self) -> None:
        """Raise :class:`PartialBatchFailure` if any record failed."""
        if self.failed:
            raise PartialBatchFailure(self.failed, self.processed, self.errors)
