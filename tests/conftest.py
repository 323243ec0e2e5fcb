"""
Shared pytest fixtures.

All tests run with ``USE_SQLITE=true``.  Service, sweeper and API tests run
against a throw-away SQLite file per test (``engine`` fixture) so that the
version guard, the ledger's unique key and the relative balance UPDATEs are
exercised for real; pure-logic tests use mocks.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import unitvest.db.base  # noqa: E402,F401
from unitvest.core.resilience import db_circuit_breaker  # noqa: E402
from unitvest.models.investment import Investment, InvestmentStatus  # noqa: E402
from unitvest.models.profile import Profile  # noqa: E402
from unitvest.services.notification_service import NotificationService  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers — create domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

OWNER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
OTHER_OWNER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
ADMIN_ID = uuid.UUID("99999999-9999-9999-9999-999999999999")
INVESTMENT_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")

NOW = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def naive(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands ``DateTime(timezone=True)`` values back without tzinfo."""
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).replace(tzinfo=None) if dt.tzinfo else dt


def make_profile(
    *,
    id: uuid.UUID = OWNER_ID,
    name: str = "Test Owner",
    email: Optional[str] = None,
    is_admin: bool = False,
    balance: Decimal = Decimal("0.00"),
    total_roi: Decimal = Decimal("0.00"),
    weekly_roi_percentage: Optional[Decimal] = None,
) -> Profile:
    """Create a Profile domain object with sensible test defaults."""
    return Profile(
        id=id,
        name=name,
        email=email or f"{id.hex[:8]}@example.com",
        is_admin=is_admin,
        balance=balance,
        total_roi=total_roi,
        weekly_roi_percentage=weekly_roi_percentage,
        created_at=NOW - timedelta(days=30),
    )


def make_investment(
    *,
    id: uuid.UUID = INVESTMENT_ID,
    owner_id: uuid.UUID = OWNER_ID,
    principal: Decimal = Decimal("1000.00"),
    roi_rate: Optional[Decimal] = None,
    status: InvestmentStatus = InvestmentStatus.ACTIVE,
    cycle_length_days: int = 7,
    cycle_end: Optional[datetime] = NOW - timedelta(hours=1),
    funded_from_balance: bool = False,
    created_at: Optional[datetime] = None,
) -> Investment:
    """
    Create an Investment with sensible test defaults.

    By default the investment is active and matured one hour before ``NOW``.
    """
    cycle_start = cycle_end - timedelta(days=cycle_length_days) if cycle_end else None
    return Investment(
        id=id,
        owner_id=owner_id,
        principal=principal,
        roi_rate=roi_rate,
        status=status,
        cycle_length_days=cycle_length_days,
        cycle_start=cycle_start,
        cycle_end=cycle_end,
        funded_from_balance=funded_from_balance,
        created_at=created_at or NOW - timedelta(days=14),
        updated_at=created_at or NOW - timedelta(days=14),
    )


class FrozenClock:
    """Clock whose "now" only moves when a test moves it."""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """A fresh SQLite database file with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'unitvest-test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db(session_factory):
    """Request-style session handed to services under test."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
def notifier(session_factory):
    return NotificationService(session_factory)


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def insert(session_factory):
    """
    Persist domain objects in their own committed transaction.

    Objects are flushed one by one in argument order, so parents listed
    first are written before the rows that reference them.
    """

    async def _insert(*objects):
        async with session_factory() as session:
            for obj in objects:
                session.add(obj)
                await session.flush()
            await session.commit()

    return _insert


@pytest.fixture()
def fetch(session_factory):
    """Read one row in a fresh session (never the caller's identity map)."""

    async def _fetch(model, id):
        async with session_factory() as session:
            return await session.get(model, id)

    return _fetch


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    return session


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    """Keep breaker state from leaking between tests."""
    db_circuit_breaker.reset()
    yield
    db_circuit_breaker.reset()
