"""
Maturity sweeper — periodic batch that credits matured cycles and re-arms them.

Invoked by an external scheduler (``python -m unitvest.sweep``) or by an
admin through ``POST /admin/maturity-sweep``.  For every ``active``
investment whose ``cycle_end`` has passed it credits one cycle's return to
the owner and starts the next cycle; the investment stays ``active``.

Guarantees:

- **Isolation per record.**  Each investment is settled in its own session
  and transaction.  A failure is logged with the investment id, reported in
  the :class:`SweepResult` and the loop moves on.  The failed record's
  transaction is rolled back, so its ``cycle_end`` is untouched and the next
  run retries it.
- **No double credit.**  The row is re-selected ``FOR UPDATE`` with the
  eligibility predicate, written with a version guard, and the ledger row is
  unique per ``(investment_id, cycle_end)``.  Overlapping runs, or a run
  racing a manual completion, end with one credit and one *skipped*.
- **Transient errors are retried** with exponential backoff; the whole
  per-record transaction is re-run because nothing of it was committed.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from unitvest.core.clock import Clock, system_clock
from unitvest.core.config import settings
from unitvest.core.exceptions import ConcurrentUpdateError, TransientStoreError
from unitvest.core.resilience import retry_with_backoff
from unitvest.db.session import atomic
from unitvest.models.accrual_event import AccrualEvent, AccrualKind
from unitvest.models.investment import Investment, InvestmentStatus
from unitvest.models.notification import NotificationSeverity
from unitvest.models.profile import Profile
from unitvest.repositories.investment_repo import InvestmentRepository
from unitvest.repositories.profile_repo import ProfileRepository
from unitvest.schemas.sweep import SweepResult
from unitvest.services.accrual import compute_accrual, cycle_window, resolve_rate
from unitvest.services.ledger import AccrualLedger
from unitvest.services.notification_service import NotificationService, SessionFactory

logger = logging.getLogger(__name__)


class MaturitySweeper:
    """
    Parameters
    ----------
    session_factory : callable
        Returns a new ``AsyncSession``; one is opened per investment.
    notifier : NotificationService
        Receives a "matured & renewed" message after each committed record.
    clock : Clock
        "Now" is read once per run and used for eligibility and new windows.
    batch_size : int
        Rows read per scan page.  A run keeps paging, keyed on
        ``(cycle_end, id)``, until no matured record is left, and never
        revisits a record it already attempted in the same run.
    max_retries, retry_base_delay :
        Backoff policy for :class:`TransientStoreError`.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        notifier: NotificationService,
        clock: Clock = system_clock,
        batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._notifier = notifier
        self._clock = clock
        self._batch_size = batch_size or settings.SWEEP_BATCH_SIZE
        self._process = retry_with_backoff(
            max_retries=settings.SWEEP_MAX_RETRIES if max_retries is None else max_retries,
            base_delay=(
                settings.SWEEP_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
            ),
            retryable_exceptions=(TransientStoreError,),
        )(self._process_one)

    async def run_maturity_sweep(self) -> SweepResult:
        """Settle every matured active investment; never raises for a single record."""
        now = self._clock.now()
        result = SweepResult()
        after = None
        seen = 0

        while True:
            async with self._session_factory() as session:
                page = await InvestmentRepository(Investment, session).find_matured(
                    now, limit=self._batch_size, after=after
                )
            if not page:
                break
            seen += len(page)
            logger.info(
                "Maturity sweep at %s: %d matured investments in page",
                now.isoformat(),
                len(page),
            )
            for investment_id, _ in page:
                await self._sweep_one(investment_id, now, result)
            last_id, last_end = page[-1]
            after = (last_end, last_id)

        if not seen:
            logger.info("Maturity sweep at %s: no matured investments", now.isoformat())
            return result

        log = logger.warning if result.failed else logger.info
        log(
            "Maturity sweep finished: processed=%d failed=%d skipped=%d",
            result.processed,
            result.failed,
            result.skipped,
        )
        return result

    async def _sweep_one(self, investment_id: UUID, now: datetime, result: SweepResult) -> None:
        try:
            event = await self._process(investment_id, now)
        except ConcurrentUpdateError as exc:
            result.skipped += 1
            logger.info("Skipped investment %s: %s", investment_id, exc.message)
            return
        except Exception as exc:
            result.record_failure(investment_id, exc)
            logger.exception(
                "Failed to process matured investment %s",
                investment_id,
                extra={"investment_id": str(investment_id)},
            )
            return

        if event is None:
            result.skipped += 1
            return

        result.processed += 1
        await self._notifier.emit(
            event.owner_id,
            "Investment Matured & Auto-Renewed",
            f"Your investment has matured. Return of ${event.amount_credited} "
            f"was added to your balance and a new cycle has started.",
            NotificationSeverity.SUCCESS,
        )

    async def _process_one(self, investment_id: UUID, now: datetime) -> Optional[AccrualEvent]:
        """
        Settle one investment in its own transaction.

        Returns ``None`` when the record is no longer due (renewed, completed
        or suspended since the scan).
        """
        async with self._session_factory() as session:
            async with atomic(session):
                investment = await InvestmentRepository(
                    Investment, session
                ).get_matured_for_update(investment_id, now)
                if investment is None:
                    return None

                fallback = await ProfileRepository(Profile, session).get_default_roi_rate(
                    investment.owner_id
                )
                accrual = compute_accrual(investment.principal, investment.roi_rate, fallback)
                start, end = cycle_window(now, investment.cycle_length_days)

                event = await AccrualLedger(session).settle(
                    investment,
                    kind=AccrualKind.RENEWAL,
                    accrual=accrual,
                    rate=resolve_rate(investment.roi_rate, fallback),
                    now=now,
                    status=InvestmentStatus.ACTIVE,
                    cycle_start=start,
                    cycle_end=end,
                )
            return event
