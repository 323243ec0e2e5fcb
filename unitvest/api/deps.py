"""
Shared FastAPI dependencies.

Authentication happens upstream: the gateway verifies the session and
forwards the caller's profile id in ``X-Requester-ID``.  These dependencies
turn that header into a :class:`Profile` and build request-scoped services.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from unitvest.core.exceptions import UnauthorizedException
from unitvest.db.session import AsyncSessionLocal, get_db
from unitvest.models.profile import Profile
from unitvest.services.investment_service import InvestmentService
from unitvest.services.notification_service import NotificationService
from unitvest.services.profile_service import ProfileService

REQUESTER_HEADER = "X-Requester-ID"


def get_notification_service() -> NotificationService:
    return NotificationService(AsyncSessionLocal)


def get_investment_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> InvestmentService:
    """Build an InvestmentService wired to the current request's DB session."""
    return InvestmentService(db, notifier)


async def get_requester(
    x_requester_id: Optional[UUID] = Header(None, alias=REQUESTER_HEADER),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    if x_requester_id is None:
        raise UnauthorizedException(f"Missing {REQUESTER_HEADER} header")
    return await ProfileService(db).get_requester(x_requester_id)


async def get_admin(requester: Profile = Depends(get_requester)) -> Profile:
    return ProfileService.require_admin(requester)
