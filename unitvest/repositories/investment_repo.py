"""
Investment repository — data-access layer for the ``investments`` table.

Besides owner-scoped listing it provides the two queries the accrual engine
is built on:

- :meth:`InvestmentRepository.find_matured` — the sweeper's paged scan.
- :meth:`InvestmentRepository.claim` — a version-guarded UPDATE that only
  succeeds for the writer who saw the current ``version``.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.future import select

from unitvest.models.investment import Investment, InvestmentStatus
from unitvest.repositories.base import BaseRepository


class InvestmentRepository(BaseRepository[Investment]):
    """Concrete repository for :class:`Investment` entities."""

    async def get_for_update(self, investment_id: UUID) -> Optional[Investment]:
        """
        Load an investment and lock its row until the transaction ends.

        ``populate_existing`` discards any stale copy held in the session's
        identity map.  On SQLite ``FOR UPDATE`` is a no-op and the version
        guard in :meth:`claim` does the work alone.
        """
        stmt = (
            select(Investment)
            .where(Investment.id == investment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rows = await self._scalars(stmt)
        return rows[0] if rows else None

    async def get_matured_for_update(
        self, investment_id: UUID, now: datetime
    ) -> Optional[Investment]:
        """
        Lock the investment only if it is still due for a sweep.

        Re-checking the predicate under the lock means a record renewed by a
        concurrent run (or completed manually) since the scan is simply not
        returned.
        """
        stmt = (
            select(Investment)
            .where(
                Investment.id == investment_id,
                Investment.status == InvestmentStatus.ACTIVE,
                Investment.cycle_end.is_not(None),
                Investment.cycle_end <= now,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rows = await self._scalars(stmt)
        return rows[0] if rows else None

    async def find_matured(
        self,
        now: datetime,
        limit: int,
        after: Optional[Tuple[datetime, UUID]] = None,
    ) -> List[Tuple[UUID, datetime]]:
        """
        ``(id, cycle_end)`` of active investments whose window closed at or
        before ``now``, most overdue first.

        ``after`` is the ``(cycle_end, id)`` of the last row of the previous
        page; only rows strictly past it are returned.
        """
        stmt = (
            select(Investment.id, Investment.cycle_end)
            .where(
                Investment.status == InvestmentStatus.ACTIVE,
                Investment.cycle_end.is_not(None),
                Investment.cycle_end <= now,
            )
            .order_by(Investment.cycle_end.asc(), Investment.id)
            .limit(limit)
        )
        if after is not None:
            last_end, last_id = after
            stmt = stmt.where(
                or_(
                    Investment.cycle_end > last_end,
                    and_(Investment.cycle_end == last_end, Investment.id > last_id),
                )
            )

        async def _run() -> List[Tuple[UUID, datetime]]:
            result = await self.db.execute(stmt)
            return [(row.id, row.cycle_end) for row in result.all()]

        return await self._execute_with_circuit_breaker(_run)

    async def list_by_status(self, status: InvestmentStatus) -> List[Investment]:
        stmt = (
            select(Investment)
            .where(Investment.status == status)
            .order_by(Investment.created_at, Investment.id)
        )
        return await self._scalars(stmt)

    async def list_filtered(
        self,
        owner_id: Optional[UUID] = None,
        status: Optional[InvestmentStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Investment]:
        """Newest first; both filters optional (admin views pass neither)."""
        stmt = select(Investment)
        if owner_id is not None:
            stmt = stmt.where(Investment.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(Investment.status == status)
        stmt = (
            stmt.order_by(Investment.created_at.desc(), Investment.id)
            .offset(skip)
            .limit(limit)
        )
        return await self._scalars(stmt)

    async def claim(self, investment: Investment, **values: Any) -> bool:
        """
        Apply ``values`` to the row only if its ``version`` is still the one
        ``investment`` was loaded with, bumping the version.

        Returns ``False`` when another writer got there first; nothing is
        changed in that case.  The in-memory ``investment`` is not updated;
        call :meth:`refresh` after commit if the caller needs the new state.
        """
        values.setdefault("updated_at", datetime.now(timezone.utc))
        stmt = (
            update(Investment)
            .where(
                Investment.id == investment.id,
                Investment.version == investment.version,
            )
            .values(version=investment.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return await self._rowcount(stmt) == 1
