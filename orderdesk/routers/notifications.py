"""Notification endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.notification import Notification
from orderdesk.schemas.notification import NotificationRead
from orderdesk.security import Actor, require_actor
from orderdesk.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, gt=0, le=200),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[Notification]:
    return notification_service.list_notifications(db, actor, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Notification:
    return notification_service.mark_read(db, actor, notification_id)
