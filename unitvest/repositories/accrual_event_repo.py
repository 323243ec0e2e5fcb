"""
Accrual ledger repository.
"""

from typing import List
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select

from unitvest.core.exceptions import ConcurrentUpdateError
from unitvest.models.accrual_event import AccrualEvent
from unitvest.repositories.base import BaseRepository


class AccrualEventRepository(BaseRepository[AccrualEvent]):
    """Concrete repository for :class:`AccrualEvent` entities."""

    async def record(self, event: AccrualEvent) -> AccrualEvent:
        """
        Insert ``event`` into the ledger.

        A unique-key violation on ``(investment_id, cycle_end)`` means the
        window was already settled by someone else; it is reported as
        :class:`ConcurrentUpdateError` and the caller's transaction must be
        rolled back.
        """
        try:
            return await self.add(event)
        except IntegrityError as exc:
            raise ConcurrentUpdateError(
                f"Accrual for investment '{event.investment_id}' ending "
                f"{event.cycle_end} has already been recorded"
            ) from exc

    async def list_for_investment(
        self, investment_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[AccrualEvent]:
        stmt = (
            select(AccrualEvent)
            .where(AccrualEvent.investment_id == investment_id)
            .order_by(AccrualEvent.computed_at.desc(), AccrualEvent.id)
            .offset(skip)
            .limit(limit)
        )
        return await self._scalars(stmt)
