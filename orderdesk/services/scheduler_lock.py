"""DB-backed lease so only one process runs the periodic jobs."""
from __future__ import annotations

import os
import socket
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.db import session_scope
from orderdesk.models.scheduler_lock import SchedulerLock
from orderdesk.utils.time import ensure_utc, utcnow

LOCK_NAME = "orderdesk-scheduler"
LOCK_TTL_SECONDS = 300


def owner_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def try_acquire_scheduler_lock(
    name: str = LOCK_NAME,
    *,
    ttl_seconds: int = LOCK_TTL_SECONDS,
    db_session: Session | None = None,
) -> bool:
    """Take the lease if it is free, expired or already ours."""

    me = owner_id()
    now = utcnow()
    with session_scope(db_session) as session:
        lock = session.scalars(
            select(SchedulerLock).where(SchedulerLock.name == name).with_for_update()
        ).first()
        if lock is None:
            session.add(
                SchedulerLock(name=name, owner=me, acquired_at=now, expires_at=now + timedelta(seconds=ttl_seconds))
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

        expired = lock.expires_at is None or ensure_utc(lock.expires_at) <= now
        if lock.owner != me and not expired:
            session.rollback()
            return False
        if lock.owner != me:
            lock.owner = me
            lock.acquired_at = now
        lock.expires_at = now + timedelta(seconds=ttl_seconds)
        session.commit()
        return True


def refresh_scheduler_lock(
    name: str = LOCK_NAME, *, ttl_seconds: int = LOCK_TTL_SECONDS, db_session: Session | None = None
) -> bool:
    """Extend our lease; returns ``False`` if another process holds it."""

    with session_scope(db_session) as session:
        lock = session.scalars(
            select(SchedulerLock).where(SchedulerLock.name == name).with_for_update()
        ).first()
        if lock is None or lock.owner != owner_id():
            session.rollback()
            return False
        lock.expires_at = utcnow() + timedelta(seconds=ttl_seconds)
        session.commit()
        return True


def release_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> None:
    with session_scope(db_session) as session:
        session.execute(
            delete(SchedulerLock).where(SchedulerLock.name == name, SchedulerLock.owner == owner_id())
        )
        session.commit()


def describe_scheduler_lock(name: str = LOCK_NAME, *, db_session: Session | None = None) -> dict[str, object]:
    with session_scope(db_session) as session:
        lock = session.scalars(select(SchedulerLock).where(SchedulerLock.name == name)).first()
        if lock is None:
            return {"status": "none", "owner": None}
        expires_at = ensure_utc(lock.expires_at) if lock.expires_at else None
        return {
            "status": "owned_by_self" if lock.owner == owner_id() else "owned_by_other",
            "owner": lock.owner,
            "expires_at": expires_at.isoformat() if expires_at else None,
            "expired": expires_at is not None and expires_at <= utcnow(),
        }


__all__ = [
    "LOCK_NAME",
    "describe_scheduler_lock",
    "refresh_scheduler_lock",
    "release_scheduler_lock",
    "try_acquire_scheduler_lock",
]
