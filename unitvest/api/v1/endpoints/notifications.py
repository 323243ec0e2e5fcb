"""
Notification endpoints.

- GET /notifications  — The caller's notifications, newest first
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from unitvest.api.deps import get_notification_service, get_requester
from unitvest.models.profile import Profile
from unitvest.schemas.notification import NotificationResponse
from unitvest.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=List[NotificationResponse], summary="List my notifications")
async def list_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    requester: Profile = Depends(get_requester),
    notifier: NotificationService = Depends(get_notification_service),
) -> List[NotificationResponse]:
    return await notifier.list_for_owner(
        requester.id, unread_only=unread_only, skip=skip, limit=limit
    )
