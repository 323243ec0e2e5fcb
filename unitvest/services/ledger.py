"""
Accrual ledger — the shared write path for every credit the engine makes.

:meth:`AccrualLedger.settle` performs, in the caller's open transaction:

1. a version-guarded UPDATE of the investment (new status and/or window);
2. the insert of the :class:`AccrualEvent` for the window being closed;
3. one relative UPDATE of the owner's ``balance`` and ``total_roi``.

If any step fails the caller's ``atomic()`` block rolls all three back, so a
crash can never leave a credited balance with an un-advanced cycle (which the
next sweep would credit again) or vice versa.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from unitvest.core.exceptions import ConcurrentUpdateError
from unitvest.models.accrual_event import AccrualEvent, AccrualKind
from unitvest.models.investment import Investment
from unitvest.models.profile import Profile
from unitvest.repositories.accrual_event_repo import AccrualEventRepository
from unitvest.repositories.investment_repo import InvestmentRepository
from unitvest.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)


class AccrualLedger:
    """Applies accruals and balance movements inside one session's transaction."""

    def __init__(self, db: AsyncSession):
        self._investments = InvestmentRepository(Investment, db)
        self._events = AccrualEventRepository(AccrualEvent, db)
        self._profiles = ProfileRepository(Profile, db)

    async def settle(
        self,
        investment: Investment,
        *,
        kind: AccrualKind,
        accrual: Decimal,
        now: datetime,
        rate: Optional[Decimal] = None,
        principal_returned: Decimal = Decimal("0.00"),
        **investment_values: Any,
    ) -> AccrualEvent:
        """
        Close out ``investment``'s current window and credit its owner.

        ``investment_values`` are the column changes for the investment row
        (``status``, ``cycle_start``, ``cycle_end``).  The ledger event
        records the window as it was *before* those changes.

        Raises :class:`ConcurrentUpdateError` if the row's version moved or the
        window was already settled, and :class:`NotFoundException` if the
        owner's profile is missing.
        """
        closed_start, closed_end = investment.cycle_start, investment.cycle_end

        await self.transition(investment, updated_at=now, **investment_values)

        event = await self._events.record(
            AccrualEvent(
                investment_id=investment.id,
                owner_id=investment.owner_id,
                kind=kind,
                roi_rate_applied=rate,
                amount_credited=accrual,
                principal_returned=principal_returned,
                cycle_start=closed_start,
                cycle_end=closed_end,
                computed_at=now,
            )
        )

        await self._profiles.credit_balance(
            investment.owner_id,
            delta=principal_returned + accrual,
            total_roi_delta=accrual,
        )
        logger.info(
            "Settled %s accrual of %s (principal returned %s) for investment %s",
            kind.value,
            accrual,
            principal_returned,
            investment.id,
            extra={
                "investment_id": str(investment.id),
                "owner_id": str(investment.owner_id),
                "amount": str(principal_returned + accrual),
            },
        )
        return event

    async def transition(self, investment: Investment, **values: Any) -> None:
        """Version-guarded lifecycle write without any balance movement."""
        if not await self._investments.claim(investment, **values):
            raise ConcurrentUpdateError(
                f"Investment '{investment.id}' was modified concurrently; retry the request"
            )

    async def refund(self, investment: Investment, amount: Decimal) -> None:
        """Return ``amount`` to the owner's balance (not counted as return)."""
        await self._profiles.credit_balance(investment.owner_id, delta=amount)
        logger.info(
            "Refunded %s to %s for investment %s",
            amount,
            investment.owner_id,
            investment.id,
            extra={"investment_id": str(investment.id), "amount": str(amount)},
        )
