"""Row locking and optimistic version guards for ledger rows."""
from __future__ import annotations

from typing import Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

T = TypeVar("T")


def lock_row(db: Session, model: Type[T], row_id: int) -> T | None:
    """Load ``row_id`` with ``SELECT ... FOR UPDATE``, refreshing any cached copy."""

    stmt = (
        select(model)
        .where(model.id == row_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one_or_none()


def bump_version(db: Session, row, seen_version: int) -> bool:
    """Advance ``row.version`` only if nobody else advanced it since it was read.

    Returns ``False`` when the stored version no longer equals
    ``seen_version``.
    """

    model = type(row)
    stmt = (
        update(model)
        .where(model.id == row.id, model.version == seen_version)
        .values(version=seen_version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        return False
    set_committed_value(row, "version", seen_version + 1)
    return True


__all__ = ["bump_version", "lock_row"]
