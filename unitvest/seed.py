"""
Seed script — populates the database with sample data for development / demo.

Usage:
    python -m unitvest.seed

The script is idempotent: it checks for existing data before inserting.
One active investment is seeded already matured so the first
``python -m unitvest.sweep`` has something to renew.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select

from unitvest.db.session import AsyncSessionLocal, atomic
from unitvest.main import create_tables
from unitvest.models.investment import Investment, InvestmentStatus
from unitvest.models.profile import Profile

logger = logging.getLogger(__name__)

ADMIN_ID = uuid.UUID("0b7e8400-e29b-41d4-a716-446655440000")
ALICE_ID = uuid.UUID("1c7e8400-e29b-41d4-a716-446655440001")
BOB_ID = uuid.UUID("2d7e8400-e29b-41d4-a716-446655440002")


def _profiles() -> list[Profile]:
    return [
        Profile(
            id=ADMIN_ID,
            name="Operations Admin",
            email="ops@unitvest.example",
            is_admin=True,
        ),
        Profile(
            id=ALICE_ID,
            name="Alice Mensah",
            email="alice@example.com",
            # 2500 deposited, less the 250 paid for her pending purchase.
            balance=Decimal("2250.00"),
        ),
        Profile(
            id=BOB_ID,
            name="Bob Okafor",
            email="bob@example.com",
            balance=Decimal("400.00"),
            weekly_roi_percentage=Decimal("12.00"),
        ),
    ]


def _investments(now: datetime) -> list[Investment]:
    return [
        # Matured: the next sweep credits 70.00 and starts a new week.
        Investment(
            id=uuid.UUID("a17e8400-e29b-41d4-a716-446655440010"),
            owner_id=ALICE_ID,
            principal=Decimal("700.00"),
            roi_rate=Decimal("10.00"),
            status=InvestmentStatus.ACTIVE,
            cycle_start=now - timedelta(days=8),
            cycle_end=now - timedelta(days=1),
        ),
        # Mid-cycle, no explicit rate: falls back to Bob's 12%.
        Investment(
            id=uuid.UUID("b27e8400-e29b-41d4-a716-446655440011"),
            owner_id=BOB_ID,
            principal=Decimal("1000.00"),
            status=InvestmentStatus.ACTIVE,
            cycle_start=now - timedelta(days=3),
            cycle_end=now + timedelta(days=4),
        ),
        # Paid from Alice's balance; rejecting it refunds the 250.
        Investment(
            id=uuid.UUID("c37e8400-e29b-41d4-a716-446655440012"),
            owner_id=ALICE_ID,
            principal=Decimal("250.00"),
            roi_rate=Decimal("5.00"),
            status=InvestmentStatus.PENDING,
            funded_from_balance=True,
        ),
    ]


async def seed() -> None:
    """Create tables and insert sample data if the database is empty."""
    await create_tables()

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Profile).limit(1))
        if result.scalars().first() is not None:
            logger.info("Database already contains data, skipping seed")
            return

        profiles = _profiles()
        investments = _investments(datetime.now(timezone.utc))
        async with atomic(session):
            session.add_all(profiles)
            await session.flush()
            session.add_all(investments)

        logger.info("Seeded %d profiles, %d investments", len(profiles), len(investments))


if __name__ == "__main__":
    asyncio.run(seed())
