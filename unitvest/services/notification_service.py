"""
Notification service — the fire-and-forget sink for lifecycle messages.

:meth:`NotificationService.emit` writes in its own session, after the
financial transaction it describes has committed.  A failure to notify is
logged and swallowed: it must never undo or mask a balance change.
"""

import logging
from typing import Callable, List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from unitvest.db.session import atomic
from unitvest.models.notification import Notification, NotificationSeverity
from unitvest.repositories.notification_repo import NotificationRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class NotificationService:
    """Writes and reads dashboard notifications."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def emit(
        self,
        owner_id: UUID,
        title: str,
        message: str,
        severity: NotificationSeverity = NotificationSeverity.INFO,
    ) -> None:
        """Best-effort insert; never raises."""
        try:
            async with self._session_factory() as session:
                async with atomic(session):
                    await NotificationRepository(Notification, session).add(
                        Notification(
                            owner_id=owner_id,
                            title=title,
                            message=message,
                            severity=severity,
                        )
                    )
        except Exception:
            logger.exception(
                "Failed to emit notification '%s' for %s", title, owner_id,
                extra={"owner_id": str(owner_id)},
            )

    async def list_for_owner(
        self,
        owner_id: UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Notification]:
        async with self._session_factory() as session:
            return await NotificationRepository(Notification, session).list_for_owner(
                owner_id, unread_only=unread_only, skip=skip, limit=limit
            )
