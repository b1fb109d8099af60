"""Transactional outbox for downstream effects.

``schedule_task`` writes a row inside the caller's transaction, so a task
exists exactly when the change that requested it committed. Workers drain
pending rows later; a failing handler is retried up to ``max_attempts``
times and then marked ``failed``. Failures never reach the transaction that
scheduled the task.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.models.scheduled_task import ScheduledTask, ScheduledTaskStatus
from orderdesk.utils.time import utcnow

logger = logging.getLogger(__name__)

CREATE_PURCHASE_ORDER = "create_purchase_order"

TaskHandler = Callable[[Session, dict[str, Any]], None]


def schedule_task(db: Session, kind: str, payload: dict[str, Any]) -> ScheduledTask:
    task = ScheduledTask(kind=kind, payload=dict(payload), status=ScheduledTaskStatus.PENDING, attempts=0)
    db.add(task)
    return task


def _record_failure(db: Session, task_id: int, error: str, max_attempts: int) -> ScheduledTask | None:
    task = db.get(ScheduledTask, task_id)
    if task is None:
        return None
    task.attempts += 1
    task.last_error = error[:1000]
    if task.attempts >= max_attempts:
        task.status = ScheduledTaskStatus.FAILED
    db.commit()
    return task


def run_pending_tasks(
    db: Session,
    handlers: Mapping[str, TaskHandler],
    *,
    max_attempts: int,
    batch_size: int = 50,
) -> dict[str, int]:
    """Execute pending tasks, committing each one on its own.

    Returns counters for ``done``, ``retry`` and ``failed`` tasks.
    """

    stats = {"done": 0, "retry": 0, "failed": 0}
    stmt = (
        select(ScheduledTask.id)
        .where(ScheduledTask.status == ScheduledTaskStatus.PENDING)
        .order_by(ScheduledTask.id)
        .limit(batch_size)
    )
    task_ids = list(db.scalars(stmt))

    for task_id in task_ids:
        task = db.get(ScheduledTask, task_id)
        if task is None or task.status != ScheduledTaskStatus.PENDING:
            continue
        handler = handlers.get(task.kind)
        if handler is None:
            logger.error("No handler for scheduled task", extra={"task_id": task_id, "kind": task.kind})
            task.status = ScheduledTaskStatus.FAILED
            task.last_error = f"unknown task kind {task.kind!r}"
            db.commit()
            stats["failed"] += 1
            continue

        kind = task.kind
        payload = dict(task.payload or {})
        try:
            handler(db, payload)
            task.attempts += 1
            task.status = ScheduledTaskStatus.DONE
            task.completed_at = utcnow()
            task.last_error = None
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception(
                "Scheduled task failed",
                extra={"task_id": task_id, "kind": kind},
            )
            failed = _record_failure(db, task_id, f"{type(exc).__name__}: {exc}", max_attempts)
            if failed is not None and failed.status == ScheduledTaskStatus.FAILED:
                stats["failed"] += 1
            else:
                stats["retry"] += 1
            continue
        stats["done"] += 1
        logger.info("Scheduled task completed", extra={"task_id": task_id, "kind": kind})

    return stats


__all__ = ["CREATE_PURCHASE_ORDER", "TaskHandler", "run_pending_tasks", "schedule_task"]
