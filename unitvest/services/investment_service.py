"""
Investment service — business logic layer for the investment lifecycle.

Owns every state transition of an :class:`Investment`::

    pending ──approve──▶ active ◀──resume── suspended
       │                  │  ▲                ▲   │
     reject            suspend└────────────────┘   │
       ▼                  │                        │
    rejected              └──complete──▶ completed ◀┘
                                            │
                                  renew (admin) ──▶ active

Each command runs in one transaction (``atomic``) and every balance movement
goes through :class:`AccrualLedger`, so completion credits, refunds and
lifecycle writes share the same version guard as the maturity sweeper.
Notifications are sent only after the transaction has committed.
"""

import logging
from decimal import Decimal
from typing import Collection, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unitvest.core.clock import Clock, system_clock
from unitvest.core.exceptions import (
    BusinessRuleViolation,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
)
from unitvest.db.session import atomic
from unitvest.models.accrual_event import AccrualEvent, AccrualKind
from unitvest.models.investment import Investment, InvestmentStatus
from unitvest.models.notification import NotificationSeverity
from unitvest.models.profile import Profile
from unitvest.repositories.accrual_event_repo import AccrualEventRepository
from unitvest.repositories.investment_repo import InvestmentRepository
from unitvest.repositories.profile_repo import ProfileRepository
from unitvest.schemas.investment import (
    AdminInvestmentCreate,
    CompletionResult,
    InvestmentPurchase,
)
from unitvest.services.accrual import compute_accrual, cycle_window, resolve_rate
from unitvest.services.ledger import AccrualLedger
from unitvest.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

_ACTIVE = InvestmentStatus.ACTIVE
_PENDING = InvestmentStatus.PENDING
_SUSPENDED = InvestmentStatus.SUSPENDED
_COMPLETED = InvestmentStatus.COMPLETED
_REJECTED = InvestmentStatus.REJECTED


class InvestmentService:
    """
    Encapsulates the lifecycle rules for :class:`Investment`.

    Parameters
    ----------
    db : AsyncSession
        Request-scoped session; every command commits or rolls back on it.
    notifier : NotificationService
        Post-commit, best-effort notification sink.
    clock : Clock
        Source of "now" for cycle windows and ledger timestamps.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationService,
        clock: Clock = system_clock,
    ):
        self._db = db
        self._notifier = notifier
        self._clock = clock
        self._investments = InvestmentRepository(Investment, db)
        self._profiles = ProfileRepository(Profile, db)
        self._events = AccrualEventRepository(AccrualEvent, db)
        self._ledger = AccrualLedger(db)

    # ── Queries ──

    async def get_investment(
        self, investment_id: UUID, requester_id: UUID, is_admin: bool
    ) -> Investment:
        investment = await self._investments.get(investment_id)
        if investment is None:
            raise NotFoundException("Investment", investment_id)
        _check_access(investment, requester_id, is_admin)
        return investment

    async def list_investments(
        self,
        owner_id: Optional[UUID] = None,
        status: Optional[InvestmentStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Investment]:
        return await self._investments.list_filtered(
            owner_id=owner_id, status=status, skip=skip, limit=limit
        )

    async def list_accruals(
        self,
        investment_id: UUID,
        requester_id: UUID,
        is_admin: bool,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AccrualEvent]:
        """Ledger rows for one investment, newest first."""
        await self.get_investment(investment_id, requester_id, is_admin)
        return await self._events.list_for_investment(investment_id, skip=skip, limit=limit)

    # ── Creation ──

    async def purchase_investment(
        self, owner_id: UUID, data: InvestmentPurchase
    ) -> Investment:
        """
        Buy units from the owner's balance.

        The principal is debited with a guarded relative UPDATE in the same
        transaction that inserts the ``pending`` record; the window starts
        when an admin approves it.
        """
        now = self._clock.now()
        async with atomic(self._db):
            await self._profiles.get_or_raise(owner_id)
            if not await self._profiles.debit_balance(owner_id, data.principal):
                raise BusinessRuleViolation(
                    f"Insufficient balance to invest {data.principal}"
                )
            investment = await self._investments.add(
                Investment(
                    owner_id=owner_id,
                    principal=data.principal,
                    cycle_length_days=data.cycle_length_days,
                    status=_PENDING,
                    funded_from_balance=True,
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(
            "Investment %s purchased by %s (%s), awaiting approval",
            investment.id,
            owner_id,
            data.principal,
        )
        await self._notifier.emit(
            owner_id,
            "Investment Pending Approval",
            f"Your investment of ${data.principal} has been received and is awaiting approval.",
        )
        return investment

    async def create_active_investment(self, data: AdminInvestmentCreate) -> Investment:
        """Admin path: create an investment that starts accruing immediately."""
        now = self._clock.now()
        start, end = cycle_window(now, data.cycle_length_days)
        async with atomic(self._db):
            await self._profiles.get_or_raise(data.owner_id)
            investment = await self._investments.add(
                Investment(
                    owner_id=data.owner_id,
                    principal=data.principal,
                    roi_rate=data.roi_rate,
                    cycle_length_days=data.cycle_length_days,
                    cycle_start=start,
                    cycle_end=end,
                    status=_ACTIVE,
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info("Admin created active investment %s for %s", investment.id, data.owner_id)
        await self._notifier.emit(
            data.owner_id,
            "Investment Activated",
            f"An investment of ${data.principal} has been opened on your account.",
            NotificationSeverity.SUCCESS,
        )
        return investment

    # ── Lifecycle commands (admin) ──

    async def approve_investment(self, investment_id: UUID) -> Investment:
        """``pending → active``; the first window starts now."""
        now = self._clock.now()
        async with atomic(self._db):
            investment = await self._load_for_update(investment_id)
            _require_status(investment, {_PENDING}, "approve")
            start, end = cycle_window(now, investment.cycle_length_days)
            await self._ledger.transition(
                investment, status=_ACTIVE, cycle_start=start, cycle_end=end, updated_at=now
            )

        await self._notifier.emit(
            investment.owner_id,
            "Investment Approved",
            f"Your investment of ${investment.principal} is now active.",
            NotificationSeverity.SUCCESS,
        )
        return await self._reload(investment)

    async def bulk_activate_pending(self) -> int:
        """Approve every pending investment in one transaction; returns the count."""
        now = self._clock.now()
        async with atomic(self._db):
            pending = await self._investments.list_by_status(_PENDING)
            for investment in pending:
                start, end = cycle_window(now, investment.cycle_length_days)
                await self._ledger.transition(
                    investment,
                    status=_ACTIVE,
                    cycle_start=start,
                    cycle_end=end,
                    updated_at=now,
                )

        logger.info("Bulk-activated %d pending investments", len(pending))
        for investment in pending:
            await self._notifier.emit(
                investment.owner_id,
                "Investment Approved",
                f"Your investment of ${investment.principal} is now active.",
                NotificationSeverity.SUCCESS,
            )
        return len(pending)

    async def reject_investment(self, investment_id: UUID) -> Investment:
        """``pending → rejected``; a principal paid from the balance is refunded."""
        now = self._clock.now()
        async with atomic(self._db):
            investment = await self._load_for_update(investment_id)
            _require_status(investment, {_PENDING}, "reject")
            await self._ledger.transition(investment, status=_REJECTED, updated_at=now)
            if investment.funded_from_balance:
                await self._ledger.refund(investment, investment.principal)

        await self._notifier.emit(
            investment.owner_id,
            "Investment Rejected",
            f"Your investment of ${investment.principal} was rejected"
            + (" and the amount returned to your balance." if investment.funded_from_balance else "."),
            NotificationSeverity.WARNING,
        )
        return await self._reload(investment)

    async def suspend_investment(self, investment_id: UUID) -> Investment:
        """``active → suspended``; the window is kept as is."""
        return await self._simple_transition(investment_id, {_ACTIVE}, _SUSPENDED, "suspend")

    async def resume_investment(self, investment_id: UUID) -> Investment:
        """``suspended → active``; the window is kept as is."""
        return await self._simple_transition(investment_id, {_SUSPENDED}, _ACTIVE, "resume")

    async def renew_investment(self, investment_id: UUID) -> Investment:
        """
        Explicit admin re-renewal: ``completed → active`` with a fresh window.

        Nothing is credited; the principal was already returned at completion
        and accrues again from now.
        """
        now = self._clock.now()
        async with atomic(self._db):
            investment = await self._load_for_update(investment_id)
            _require_status(investment, {_COMPLETED}, "renew")
            start, end = cycle_window(now, investment.cycle_length_days)
            await self._ledger.transition(
                investment, status=_ACTIVE, cycle_start=start, cycle_end=end, updated_at=now
            )

        await self._notifier.emit(
            investment.owner_id,
            "Investment Re-activated",
            f"Your investment of ${investment.principal} has been re-activated for a new cycle.",
        )
        return await self._reload(investment)

    # ── Manual completion ──

    async def complete_investment(
        self, investment_id: UUID, requester_id: UUID, is_admin: bool
    ) -> CompletionResult:
        """
        Cash out an ``active`` or ``suspended`` investment.

        Credits ``principal + accrual`` to the balance and ``accrual`` to
        ``total_roi``, records a ``completion`` ledger event for the current
        window and moves the investment to ``completed``.  No new cycle starts.

        Raises
        ------
        NotFoundException
            No such investment (or its owner profile is gone).
        ForbiddenException
            Requester is neither the owner nor an admin.
        InvalidStateException
            Investment is not active or suspended.
        ConcurrentUpdateError
            A sweep or another completion settled it first.
        """
        now = self._clock.now()
        async with atomic(self._db):
            investment = await self._load_for_update(investment_id)
            _check_access(investment, requester_id, is_admin)
            _require_status(investment, {_ACTIVE, _SUSPENDED}, "complete")

            fallback = await self._profiles.get_default_roi_rate(investment.owner_id)
            rate = resolve_rate(investment.roi_rate, fallback)
            accrual = compute_accrual(investment.principal, investment.roi_rate, fallback)
            principal = Decimal(investment.principal)

            await self._ledger.settle(
                investment,
                kind=AccrualKind.COMPLETION,
                accrual=accrual,
                rate=rate,
                principal_returned=principal,
                now=now,
                status=_COMPLETED,
            )
            admin_ids = await self._profiles.list_admin_ids()

        credited = principal + accrual
        logger.info(
            "Investment %s completed by %s%s: credited %s (return %s)",
            investment_id,
            requester_id,
            " (admin)" if is_admin else "",
            credited,
            accrual,
        )
        await self._notifier.emit(
            investment.owner_id,
            "Investment Completed",
            f"Investment of ${principal} was completed. ${credited} "
            f"(including ${accrual} return) has been added to the balance.",
            NotificationSeverity.SUCCESS,
        )
        # Admins who are themselves the owner already got the message above.
        for admin_id in admin_ids:
            if admin_id == investment.owner_id:
                continue
            await self._notifier.emit(
                admin_id,
                "Investment Completed",
                f"Investment {investment_id} of ${principal} owned by "
                f"{investment.owner_id} was completed; ${credited} was credited "
                f"to the owner's balance.",
            )
        return CompletionResult(
            investment_id=investment_id,
            credited_amount=credited,
            accrual_amount=accrual,
            new_status=_COMPLETED,
        )

    # ── Admin override ──

    async def force_status(
        self,
        investment_id: UUID,
        new_status: InvestmentStatus,
        override_amount: Optional[Decimal] = None,
    ) -> Investment:
        """
        Set any status outside the normal lifecycle.

        - ``active`` re-arms the window from now.
        - ``completed`` with ``override_amount`` credits exactly that amount to
          ``balance`` and ``total_roi`` without consulting the calculator, and
          records it as an ``override`` ledger event.
          An investment that is already ``completed`` has had its window
          settled, so an override credit on it is refused with
          :class:`InvalidStateException`; force it ``active`` first.
        - ``suspended`` / ``rejected`` only change the status.
        """
        if new_status == _PENDING:
            raise BusinessRuleViolation("Investments cannot be forced back to 'pending'")
        if override_amount is not None and new_status != _COMPLETED:
            raise BusinessRuleViolation(
                "override_amount is only allowed when forcing 'completed'"
            )

        now = self._clock.now()
        async with atomic(self._db):
            investment = await self._load_for_update(investment_id)
            previous = investment.status

            if override_amount is not None and previous == _COMPLETED:
                raise InvalidStateException(
                    f"Cannot credit an override on investment '{investment.id}': it is "
                    f"already completed and its window has been settled; force it "
                    f"'active' or renew it first"
                )
            if new_status == _COMPLETED and override_amount is not None:
                await self._ledger.settle(
                    investment,
                    kind=AccrualKind.OVERRIDE,
                    accrual=Decimal(override_amount),
                    now=now,
                    status=_COMPLETED,
                )
            elif new_status == _ACTIVE:
                start, end = cycle_window(now, investment.cycle_length_days)
                await self._ledger.transition(
                    investment, status=_ACTIVE, cycle_start=start, cycle_end=end, updated_at=now
                )
            else:
                await self._ledger.transition(investment, status=new_status, updated_at=now)

        logger.warning(
            "Admin forced investment %s from %s to %s (override_amount=%s)",
            investment_id,
            previous.value,
            new_status.value,
            override_amount,
            extra={"investment_id": str(investment_id)},
        )
        await self._notifier.emit(
            investment.owner_id,
            "Investment Status Updated",
            f"Your investment of ${investment.principal} is now {new_status.value}.",
        )
        return await self._reload(investment)

    # ── Internal helpers ──

    async def _load_for_update(self, investment_id: UUID) -> Investment:
        investment = await self._investments.get_for_update(investment_id)
        if investment is None:
            raise NotFoundException("Investment", investment_id)
        return investment

    async def _simple_transition(
        self,
        investment_id: UUID,
        allowed: Collection[InvestmentStatus],
        target: InvestmentStatus,
        action: str,
    ) -> Investment:
        async with atomic(self._db):
            investment = await self._load_for_update(investment_id)
            _require_status(investment, allowed, action)
            await self._ledger.transition(
                investment, status=target, updated_at=self._clock.now()
            )

        logger.info("Investment %s → %s", investment_id, target.value)
        await self._notifier.emit(
            investment.owner_id,
            f"Investment {target.value.capitalize()}",
            f"Your investment of ${investment.principal} is now {target.value}.",
        )
        return await self._reload(investment)

    async def _reload(self, investment: Investment) -> Investment:
        # Lifecycle writes bypass the identity map; pull the committed row.
        return await self._investments.refresh(investment)


# ── Rule helpers ──


def _check_access(investment: Investment, requester_id: UUID, is_admin: bool) -> None:
    if not is_admin and investment.owner_id != requester_id:
        raise ForbiddenException("You do not have access to this investment")


_STATE_PHRASES = {
    frozenset({_ACTIVE, _SUSPENDED}): "an active or suspended state",
    frozenset({_PENDING}): "the pending state",
    frozenset({_ACTIVE}): "the active state",
    frozenset({_SUSPENDED}): "the suspended state",
    frozenset({_COMPLETED}): "the completed state",
}


def _require_status(
    investment: Investment, allowed: Collection[InvestmentStatus], action: str
) -> None:
    """Raise :class:`InvalidStateException` naming the violated precondition."""
    if investment.status not in allowed:
        phrase = _STATE_PHRASES.get(frozenset(allowed), "a valid state")
        raise InvalidStateException(
            f"Cannot {action} investment '{investment.id}': investment is not in "
            f"{phrase} (current status: '{investment.status.value}')"
        )
