"""Bulk order operations with per-item outcomes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from fastapi import HTTPException
from sqlalchemy.orm import Session

from orderdesk.models.order import Order, OrderStatus
from orderdesk.security import Actor
from orderdesk.services.order_state import coerce_status
from orderdesk.services.orders import approve_order, update_order_status
from orderdesk.utils.errors import DomainError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkItemResult:
    order_id: int
    success: bool
    error_code: str | None = None
    error: str | None = None


def _describe(exc: HTTPException) -> tuple[str, str]:
    if isinstance(exc, DomainError):
        return exc.code, exc.message
    detail = exc.detail
    if isinstance(detail, dict) and isinstance(detail.get("error"), dict):
        return detail["error"].get("code", "ERROR"), detail["error"].get("message", "")
    return "ERROR", str(detail)


def _run_each(
    db: Session, order_ids: Iterable[int], operation: Callable[[int], Order], label: str
) -> list[BulkItemResult]:
    """Apply ``operation`` to every id; each commits or rolls back on its own."""

    results: list[BulkItemResult] = []
    for order_id in order_ids:
        try:
            operation(order_id)
        except HTTPException as exc:
            db.rollback()
            code, message = _describe(exc)
            results.append(BulkItemResult(order_id=order_id, success=False, error_code=code, error=message))
            continue
        results.append(BulkItemResult(order_id=order_id, success=True))

    failed = sum(1 for result in results if not result.success)
    logger.info(
        "Bulk operation finished",
        extra={"operation": label, "total": len(results), "failed": failed},
    )
    return results


def bulk_approve(
    db: Session, actor: Actor | None, order_ids: list[int], notes: str | None = None
) -> list[BulkItemResult]:
    return _run_each(
        db, order_ids, lambda order_id: approve_order(db, actor, order_id, notes=notes), "bulk_approve"
    )


def bulk_update_status(
    db: Session,
    actor: Actor | None,
    order_ids: list[int],
    status: OrderStatus | str,
    reason: str | None = None,
) -> list[BulkItemResult]:
    """Move every order to ``status``; failures are reported per order."""

    target = coerce_status(status)
    return _run_each(
        db,
        order_ids,
        lambda order_id: update_order_status(db, actor, order_id, target, reason=reason),
        f"bulk_update_status:{target.value}",
    )


__all__ = ["BulkItemResult", "bulk_approve", "bulk_update_status"]
