"""In-app notification sink."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.models.company import CompanyMember, MemberRole
from orderdesk.models.notification import Notification, NotificationType
from orderdesk.security import Actor
from orderdesk.services.rbac import require_actor
from orderdesk.utils.audit import sanitize_payload_for_audit
from orderdesk.utils.errors import NotFoundError


def insert_notification(
    db: Session,
    *,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> Notification:
    """Queue a notification in the caller's transaction."""

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=sanitize_payload_for_audit(data) if data is not None else None,
        is_read=False,
    )
    db.add(notification)
    return notification


def company_admin_user_ids(db: Session, company_id: int) -> list[int]:
    stmt = select(CompanyMember.user_id).where(
        CompanyMember.company_id == company_id,
        CompanyMember.role == MemberRole.ADMIN,
        CompanyMember.is_active.is_(True),
    )
    return list(db.scalars(stmt))


def notify_company_admins(
    db: Session,
    company_id: int,
    *,
    type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> int:
    user_ids = company_admin_user_ids(db, company_id)
    for user_id in user_ids:
        insert_notification(db, user_id=user_id, type=type, title=title, message=message, data=data)
    return len(user_ids)


def list_notifications(
    db: Session, actor: Actor | None, *, unread_only: bool = False, limit: int = 50
) -> list[Notification]:
    actor = require_actor(actor)
    stmt = select(Notification).where(Notification.user_id == actor.user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.id.desc()).limit(limit)
    return list(db.scalars(stmt))


def mark_read(db: Session, actor: Actor | None, notification_id: int) -> Notification:
    actor = require_actor(actor)
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != actor.user_id:
        raise NotFoundError("Notification not found.", code="NOTIFICATION_NOT_FOUND")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


__all__ = [
    "company_admin_user_ids",
    "insert_notification",
    "list_notifications",
    "mark_read",
    "notify_company_admins",
]
