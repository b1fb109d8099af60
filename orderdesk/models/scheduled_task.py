"""Outbox rows for work executed after the originating transaction commits."""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, enum_type


class ScheduledTaskStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class ScheduledTask(Base):
    __tablename__ = "scheduled_tasks"
    __table_args__ = (Index("ix_scheduled_tasks_status", "status", "id"),)

    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[ScheduledTaskStatus] = mapped_column(
        enum_type(ScheduledTaskStatus, "scheduled_task_status"),
        nullable=False,
        default=ScheduledTaskStatus.PENDING,
    )
    attempts: Mapped[int] = mapped_column(nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
