"""
Tests for MaturitySweeper against a real (SQLite) database.

Tests cover:
- renewal: balance, total_roi, new window, ledger row, notification
- rate fallback to the owner's profile percentage and the 10% default
- idempotency: a second run at the same instant credits nothing
- records not yet due, suspended or completed are ignored
- per-record isolation: one failing record does not block the others and
  keeps its cycle_end so the next run retries it
- transient errors are retried
- version conflicts are counted as skipped
- one run pages through the whole backlog
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from unitvest.core.exceptions import (
    ConcurrentUpdateError,
    PartialBatchFailure,
    TransientStoreError,
)
from unitvest.models.accrual_event import AccrualEvent, AccrualKind
from unitvest.models.investment import Investment, InvestmentStatus
from unitvest.models.notification import Notification
from unitvest.models.profile import Profile
from unitvest.repositories.investment_repo import InvestmentRepository
from unitvest.repositories.profile_repo import ProfileRepository
from unitvest.services.sweeper import MaturitySweeper

from .conftest import (
    INVESTMENT_ID,
    NOW,
    OTHER_OWNER_ID,
    OWNER_ID,
    make_investment,
    make_profile,
    naive,
)


@pytest.fixture()
def sweeper(session_factory, notifier, clock):
    return MaturitySweeper(
        session_factory, notifier, clock=clock, batch_size=100, retry_base_delay=0
    )


async def _all(session_factory, model):
    async with session_factory() as session:
        return list((await session.execute(select(model))).scalars().all())


class TestRenewal:
    @pytest.mark.asyncio
    async def test_matured_investment_is_credited_and_renewed(
        self, sweeper, insert, fetch, session_factory
    ):
        await insert(
            make_profile(balance=Decimal("100.00")),
            make_investment(principal=Decimal("700.00"), roi_rate=Decimal("10.00")),
        )
        before = await fetch(Investment, INVESTMENT_ID)

        result = await sweeper.run_maturity_sweep()

        assert (result.processed, result.failed, result.skipped) == (1, 0, 0)
        profile = await fetch(Profile, OWNER_ID)
        assert profile.balance == Decimal("170.00")
        assert profile.total_roi == Decimal("70.00")

        investment = await fetch(Investment, INVESTMENT_ID)
        assert investment.status == InvestmentStatus.ACTIVE
        assert naive(investment.cycle_start) == naive(NOW)
        assert naive(investment.cycle_end) == naive(NOW + timedelta(days=7))
        assert investment.version == before.version + 1

        [event] = await _all(session_factory, AccrualEvent)
        assert event.kind == AccrualKind.RENEWAL
        assert event.amount_credited == Decimal("70.00")
        assert event.principal_returned == Decimal("0.00")
        assert event.roi_rate_applied == Decimal("10.00")
        assert naive(event.cycle_end) == naive(before.cycle_end)

    @pytest.mark.asyncio
    async def test_owner_is_notified(self, sweeper, insert, session_factory):
        await insert(make_profile(), make_investment(principal=Decimal("700.00")))

        await sweeper.run_maturity_sweep()

        [note] = await _all(session_factory, Notification)
        assert note.owner_id == OWNER_ID
        assert note.title == "Investment Matured & Auto-Renewed"
        assert "70.00" in note.message

    @pytest.mark.asyncio
    async def test_profile_rate_used_when_investment_has_none(self, sweeper, insert, fetch):
        await insert(
            make_profile(weekly_roi_percentage=Decimal("12.00")),
            make_investment(principal=Decimal("1000.00"), roi_rate=None),
        )

        await sweeper.run_maturity_sweep()

        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("120.00")

    @pytest.mark.asyncio
    async def test_default_rate_when_nothing_set(self, sweeper, insert, fetch, session_factory):
        await insert(make_profile(), make_investment(principal=Decimal("1000.00")))

        await sweeper.run_maturity_sweep()

        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("100.00")
        [event] = await _all(session_factory, AccrualEvent)
        assert event.roi_rate_applied == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_zero_rate_renews_without_credit(self, sweeper, insert, fetch):
        await insert(
            make_profile(weekly_roi_percentage=Decimal("12.00")),
            make_investment(roi_rate=Decimal("0")),
        )

        result = await sweeper.run_maturity_sweep()

        assert result.processed == 1
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("0.00")
        investment = await fetch(Investment, INVESTMENT_ID)
        assert naive(investment.cycle_end) == naive(NOW + timedelta(days=7))


class TestEligibility:
    @pytest.mark.asyncio
    async def test_second_run_at_same_instant_is_a_no_op(self, sweeper, insert, fetch):
        await insert(make_profile(), make_investment(principal=Decimal("700.00")))

        first = await sweeper.run_maturity_sweep()
        second = await sweeper.run_maturity_sweep()

        assert first.processed == 1
        assert (second.processed, second.failed, second.skipped) == (0, 0, 0)
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_renewed_investment_matures_again_next_cycle(
        self, sweeper, insert, fetch, clock
    ):
        await insert(make_profile(), make_investment(principal=Decimal("700.00")))

        await sweeper.run_maturity_sweep()
        clock.advance(days=7)
        result = await sweeper.run_maturity_sweep()

        assert result.processed == 1
        profile = await fetch(Profile, OWNER_ID)
        assert profile.balance == Decimal("140.00")
        assert profile.total_roi == Decimal("140.00")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            InvestmentStatus.PENDING,
            InvestmentStatus.SUSPENDED,
            InvestmentStatus.COMPLETED,
            InvestmentStatus.REJECTED,
        ],
    )
    async def test_only_active_investments_are_swept(self, sweeper, insert, fetch, status):
        await insert(make_profile(), make_investment(status=status))

        result = await sweeper.run_maturity_sweep()

        assert result.processed == 0
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_not_yet_matured_is_ignored(self, sweeper, insert):
        await insert(make_profile(), make_investment(cycle_end=NOW + timedelta(seconds=1)))

        result = await sweeper.run_maturity_sweep()

        assert result.processed == 0

    @pytest.mark.asyncio
    async def test_cycle_end_exactly_now_is_due(self, sweeper, insert):
        await insert(make_profile(), make_investment(cycle_end=NOW))

        result = await sweeper.run_maturity_sweep()

        assert result.processed == 1

    @pytest.mark.asyncio
    async def test_active_without_window_is_ignored(self, sweeper, insert):
        await insert(make_profile(), make_investment(cycle_end=None))

        result = await sweeper.run_maturity_sweep()

        assert result.processed == 0

    @pytest.mark.asyncio
    async def test_one_run_pages_through_the_whole_backlog(
        self, session_factory, notifier, clock, insert, fetch
    ):
        await insert(
            make_profile(),
            make_investment(id=uuid4()),
            make_investment(id=uuid4(), cycle_end=NOW - timedelta(days=2)),
            make_investment(id=uuid4(), cycle_end=NOW - timedelta(days=3)),
        )
        sweeper = MaturitySweeper(session_factory, notifier, clock=clock, batch_size=2)

        first = await sweeper.run_maturity_sweep()
        second = await sweeper.run_maturity_sweep()

        assert first.processed == 3
        assert second.processed == 0
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_failed_record_is_not_revisited_on_later_pages(
        self, session_factory, notifier, clock, insert, monkeypatch
    ):
        await insert(
            make_profile(),
            make_profile(id=OTHER_OWNER_ID),
            make_investment(
                id=uuid4(), owner_id=OTHER_OWNER_ID, cycle_end=NOW - timedelta(days=2)
            ),
            make_investment(id=uuid4()),
        )
        original = ProfileRepository.get_default_roi_rate

        async def flaky(self, owner_id):
            if owner_id == OTHER_OWNER_ID:
                raise RuntimeError("profile lookup exploded")
            return await original(self, owner_id)

        monkeypatch.setattr(ProfileRepository, "get_default_roi_rate", flaky)
        sweeper = MaturitySweeper(
            session_factory, notifier, clock=clock, batch_size=1, retry_base_delay=0
        )

        result = await sweeper.run_maturity_sweep()

        assert (result.processed, result.failed, result.skipped) == (1, 1, 0)


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_the_rest(
        self, sweeper, insert, fetch, monkeypatch
    ):
        healthy_id, broken_id = uuid4(), uuid4()
        await insert(
            make_profile(),
            make_profile(id=OTHER_OWNER_ID),
            make_investment(id=healthy_id, principal=Decimal("700.00")),
            make_investment(id=broken_id, owner_id=OTHER_OWNER_ID),
        )
        original = ProfileRepository.get_default_roi_rate

        async def flaky(self, owner_id):
            if owner_id == OTHER_OWNER_ID:
                raise RuntimeError("profile lookup exploded")
            return await original(self, owner_id)

        monkeypatch.setattr(ProfileRepository, "get_default_roi_rate", flaky)
        broken_before = await fetch(Investment, broken_id)

        result = await sweeper.run_maturity_sweep()

        assert (result.processed, result.failed) == (1, 1)
        assert result.errors[0].investment_id == broken_id
        assert "exploded" in result.errors[0].reason

        broken_after = await fetch(Investment, broken_id)
        assert naive(broken_after.cycle_end) == naive(broken_before.cycle_end)
        assert broken_after.version == broken_before.version
        assert (await fetch(Profile, OTHER_OWNER_ID)).balance == Decimal("0.00")
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_failed_record_is_picked_up_by_next_run(
        self, sweeper, insert, fetch, monkeypatch
    ):
        await insert(make_profile(), make_investment(principal=Decimal("700.00")))

        async def broken(self, owner_id):
            raise RuntimeError("down")

        with monkeypatch.context() as patch:
            patch.setattr(ProfileRepository, "get_default_roi_rate", broken)
            failed = await sweeper.run_maturity_sweep()
        retried = await sweeper.run_maturity_sweep()

        assert failed.failed == 1
        assert retried.processed == 1
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_partial_failure_can_be_raised(self, sweeper, insert, monkeypatch):
        await insert(make_profile(), make_investment())

        async def broken(self, owner_id):
            raise RuntimeError("down")

        monkeypatch.setattr(ProfileRepository, "get_default_roi_rate", broken)
        result = await sweeper.run_maturity_sweep()

        with pytest.raises(PartialBatchFailure) as exc_info:
            result.raise_for_failures()
        assert exc_info.value.failed == 1
        assert exc_info.value.processed == 0

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, sweeper, insert, fetch, monkeypatch):
        await insert(make_profile(), make_investment(principal=Decimal("700.00")))
        original = ProfileRepository.get_default_roi_rate
        calls = []

        async def flaky_once(self, owner_id):
            calls.append(owner_id)
            if len(calls) == 1:
                raise TransientStoreError()
            return await original(self, owner_id)

        monkeypatch.setattr(ProfileRepository, "get_default_roi_rate", flaky_once)

        result = await sweeper.run_maturity_sweep()

        assert result.processed == 1
        assert len(calls) == 2
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("70.00")

    @pytest.mark.asyncio
    async def test_transient_error_gives_up_after_retries(
        self, session_factory, notifier, clock, insert, monkeypatch
    ):
        await insert(make_profile(), make_investment())
        calls = []

        async def always_down(self, owner_id):
            calls.append(owner_id)
            raise TransientStoreError()

        monkeypatch.setattr(ProfileRepository, "get_default_roi_rate", always_down)
        sweeper = MaturitySweeper(
            session_factory, notifier, clock=clock, max_retries=2, retry_base_delay=0
        )

        result = await sweeper.run_maturity_sweep()

        assert result.failed == 1
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_version_conflict_is_skipped(self, sweeper, insert, fetch, monkeypatch):
        await insert(make_profile(), make_investment())

        async def lose_race(self, investment, **values):
            return False

        monkeypatch.setattr(InvestmentRepository, "claim", lose_race)

        result = await sweeper.run_maturity_sweep()

        assert (result.processed, result.failed, result.skipped) == (0, 0, 1)
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_window_already_in_ledger_is_skipped(
        self, sweeper, insert, fetch, session_factory
    ):
        investment = make_investment()
        await insert(make_profile(), investment)
        await insert(
            AccrualEvent(
                investment_id=INVESTMENT_ID,
                owner_id=OWNER_ID,
                kind=AccrualKind.RENEWAL,
                amount_credited=Decimal("100.00"),
                cycle_start=investment.cycle_start,
                cycle_end=investment.cycle_end,
            ),
        )

        result = await sweeper.run_maturity_sweep()

        assert result.skipped == 1
        assert (await fetch(Profile, OWNER_ID)).balance == Decimal("0.00")
        assert len(await _all(session_factory, AccrualEvent)) == 1
        assert (await fetch(Investment, INVESTMENT_ID)).version == 1


class TestSkippedRecords:
    @pytest.mark.asyncio
    async def test_record_no_longer_due_returns_none(self, sweeper, insert):
        """Between scan and lock another writer renewed it: nothing to do."""
        await insert(make_profile(), make_investment(cycle_end=NOW + timedelta(days=1)))

        assert await sweeper._process_one(INVESTMENT_ID, NOW) is None

    @pytest.mark.asyncio
    async def test_concurrent_update_error_not_counted_as_failure(
        self, sweeper, insert, monkeypatch
    ):
        await insert(make_profile(), make_investment())

        async def conflict(investment_id, now):
            raise ConcurrentUpdateError("moved on")

        monkeypatch.setattr(sweeper, "_process", conflict)

        result = await sweeper.run_maturity_sweep()

        assert result.skipped == 1
        assert result.failed == 0
