"""
Notification repository — data-access layer for the ``notifications`` table.
"""

from typing import List
from uuid import UUID

from sqlalchemy.future import select

from unitvest.models.notification import Notification
from unitvest.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Concrete repository for :class:`Notification` entities."""

    async def list_for_owner(
        self,
        owner_id: UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Notification]:
        """Newest first."""
        stmt = select(Notification).where(Notification.owner_id == owner_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = (
            stmt.order_by(Notification.created_at.desc(), Notification.id)
            .offset(skip)
            .limit(limit)
        )
        return await self._scalars(stmt)
