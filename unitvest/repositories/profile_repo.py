"""
Profile repository — the account store.

Balance changes are always expressed as relative adjustments applied by the
database (``balance = balance + :delta``), never as a value computed in
Python from an earlier read.  Concurrent deposits, withdrawals, purchases,
sweeps and completions therefore cannot overwrite each other.
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.future import select

from unitvest.core.exceptions import NotFoundException
from unitvest.models.profile import Profile
from unitvest.repositories.base import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    """Concrete repository for :class:`Profile` entities."""

    async def get_or_raise(self, owner_id: UUID) -> Profile:
        profile = await self.get(owner_id)
        if profile is None:
            raise NotFoundException("Profile", owner_id)
        return profile

    async def get_balance(self, owner_id: UUID) -> Decimal:
        stmt = select(Profile.balance).where(Profile.id == owner_id)
        return await self._scalar_or_missing(stmt, owner_id)

    async def get_default_roi_rate(self, owner_id: UUID) -> Optional[Decimal]:
        """
        Return the owner's ``weekly_roi_percentage`` (may be ``None``).

        Raises :class:`NotFoundException` if the profile does not exist, so a
        sweep never credits an investment whose owner is gone.
        """
        stmt = select(Profile.weekly_roi_percentage).where(Profile.id == owner_id)
        return await self._scalar_or_missing(stmt, owner_id)

    async def list_admin_ids(self) -> List[UUID]:
        stmt = select(Profile.id).where(Profile.is_admin.is_(True)).order_by(Profile.id)

        async def _run() -> List[UUID]:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_run)

    async def credit_balance(
        self, owner_id: UUID, delta: Decimal, total_roi_delta: Decimal = Decimal("0")
    ) -> None:
        """
        Atomically add ``delta`` to ``balance`` and ``total_roi_delta`` to
        ``total_roi`` in a single UPDATE.

        Raises :class:`NotFoundException` when no profile row matched; the
        enclosing transaction must then be rolled back.
        """
        stmt = (
            update(Profile)
            .where(Profile.id == owner_id)
            .values(
                balance=Profile.balance + delta,
                total_roi=Profile.total_roi + total_roi_delta,
            )
            .execution_options(synchronize_session=False)
        )
        if await self._rowcount(stmt) != 1:
            raise NotFoundException("Profile", owner_id)

    async def debit_balance(self, owner_id: UUID, amount: Decimal) -> bool:
        """
        Atomically subtract ``amount`` if the balance covers it.

        Returns ``False`` (and changes nothing) when funds are insufficient or
        the profile does not exist.
        """
        stmt = (
            update(Profile)
            .where(Profile.id == owner_id, Profile.balance >= amount)
            .values(balance=Profile.balance - amount)
            .execution_options(synchronize_session=False)
        )
        return await self._rowcount(stmt) == 1

    async def _scalar_or_missing(self, stmt, owner_id: UUID):
        async def _run():
            result = await self.db.execute(stmt)
            return result.one_or_none()

        row = await self._execute_with_circuit_breaker(_run)
        if row is None:
            raise NotFoundException("Profile", owner_id)
        return row[0]
