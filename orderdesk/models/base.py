"""Declarative base model for SQLAlchemy."""
from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Type

from sqlalchemy import DateTime, Enum as SqlEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def enum_type(enum_cls: Type[Enum], name: str) -> SqlEnum:
    """Store enum *values* (``pending_approval``) as plain strings."""

    return SqlEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
