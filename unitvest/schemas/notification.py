"""
Pydantic schemas for notifications.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from unitvest.models.notification import NotificationSeverity


class NotificationResponse(BaseModel):
    id: UUID
    title: str
    message: str
    severity: NotificationSeverity
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
