"""
Profile service — resolves the caller of an HTTP request to an account.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unitvest.core.exceptions import ForbiddenException, UnauthorizedException
from unitvest.models.profile import Profile
from unitvest.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, db: AsyncSession):
        self._repo = ProfileRepository(Profile, db)

    async def get_requester(self, requester_id: UUID) -> Profile:
        """
        Load the profile the upstream gateway authenticated.

        An id with no profile behind it is treated as unauthenticated.
        """
        profile = await self._repo.get(requester_id)
        if profile is None:
            logger.warning("Rejected request from unknown requester %s", requester_id)
            raise UnauthorizedException()
        return profile

    @staticmethod
    def require_admin(profile: Profile) -> Profile:
        if not profile.is_admin:
            raise ForbiddenException("Administrator privileges required")
        return profile
