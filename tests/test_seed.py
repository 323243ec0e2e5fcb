"""
Tests for the demo seed against a real (SQLite) database.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

import unitvest.seed as seed_module
from unitvest.models.investment import Investment, InvestmentStatus
from unitvest.models.profile import Profile
from unitvest.services.investment_service import InvestmentService


@pytest.fixture()
def seeded_db(session_factory, monkeypatch):
    async def tables_ready() -> bool:
        return True

    monkeypatch.setattr(seed_module, "AsyncSessionLocal", session_factory)
    monkeypatch.setattr(seed_module, "create_tables", tables_ready)
    return seed_module.seed


class TestSeed:
    @pytest.mark.asyncio
    async def test_is_idempotent(self, seeded_db, session_factory):
        await seeded_db()
        await seeded_db()

        async with session_factory() as session:
            profiles = (await session.execute(select(func.count(Profile.id)))).scalar_one()
            investments = (
                await session.execute(select(func.count(Investment.id)))
            ).scalar_one()
        assert (profiles, investments) == (3, 3)

    @pytest.mark.asyncio
    async def test_balance_funded_purchase_was_already_debited(
        self, seeded_db, db, notifier, clock, fetch
    ):
        await seeded_db()
        service = InvestmentService(db, notifier, clock=clock)
        [pending] = await service.list_investments(
            owner_id=seed_module.ALICE_ID, status=InvestmentStatus.PENDING
        )
        assert pending.funded_from_balance is True

        await service.reject_investment(pending.id)

        # Rejecting hands back exactly what the purchase took.
        alice = await fetch(Profile, seed_module.ALICE_ID)
        assert alice.balance == Decimal("2500.00")
