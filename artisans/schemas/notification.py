"""Notification schemas."""

from datetime import datetime
from typing import List, Optional

from artisans.models.notification import NotificationPriority
from artisans.schemas.base import CamelModel


class NotificationOut(CamelModel):
    id: int
    title: str
    message: str
    type: str
    priority: NotificationPriority
    link: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None


class NotificationList(CamelModel):
    unread_count: int
    notifications: List[NotificationOut]
