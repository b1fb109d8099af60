"""Notification schemas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from orderdesk.models.notification import NotificationType


class NotificationRead(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    data: dict | None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
