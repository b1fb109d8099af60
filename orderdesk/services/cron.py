"""Periodic jobs run by the scheduler."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.config import get_settings
from orderdesk.db import session_scope
from orderdesk.core.runtime_state import record_job_run
from orderdesk.models.budget import Budget, BudgetStatus
from orderdesk.services.ledger import close_budget
from orderdesk.services.orders import SYSTEM_ACTOR
from orderdesk.services.purchase_orders import handle_create_purchase_order
from orderdesk.services.scheduler_lock import refresh_scheduler_lock
from orderdesk.services.spend import refresh_budget
from orderdesk.services.tasks import CREATE_PURCHASE_ORDER, TaskHandler, run_pending_tasks
from orderdesk.services.versioning import lock_row
from orderdesk.utils.errors import DomainError
from orderdesk.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

TASK_HANDLERS: dict[str, TaskHandler] = {
    CREATE_PURCHASE_ORDER: handle_create_purchase_order,
}


def process_scheduled_tasks_once(db_session: Session | None = None) -> dict[str, int]:
    """Drain one batch of the outbox."""

    settings = get_settings()
    with session_scope(db_session) as session:
        stats = run_pending_tasks(
            session,
            TASK_HANDLERS,
            max_attempts=settings.TASK_MAX_ATTEMPTS,
            batch_size=settings.TASK_BATCH_SIZE,
        )
    record_job_run("process_scheduled_tasks")
    if any(stats.values()):
        logger.info("Scheduled tasks processed", extra=stats)
    return stats


def complete_expired_budgets_once(
    now: datetime | None = None, db_session: Session | None = None
) -> int:
    """Mark active budgets whose period has ended as completed."""

    moment = ensure_utc(now) if now is not None else utcnow()
    completed = 0
    with session_scope(db_session) as session:
        candidates = session.execute(
            select(Budget.id, Budget.period_end).where(Budget.status == BudgetStatus.ACTIVE)
        ).all()
        for budget_id, period_end in candidates:
            if ensure_utc(period_end) >= moment:
                continue
            budget = lock_row(session, Budget, budget_id)
            if budget is None or budget.status != BudgetStatus.ACTIVE:
                session.rollback()
                continue
            try:
                close_budget(session, budget, BudgetStatus.COMPLETED, actor=SYSTEM_ACTOR)
                refresh_budget(session, budget)
                session.commit()
            except DomainError as exc:
                session.rollback()
                logger.warning(
                    "Budget expiry skipped",
                    extra={"budget_id": budget_id, "code": exc.code},
                )
                continue
            completed += 1
            logger.info("Budget period ended", extra={"budget_id": budget_id})
    record_job_run("complete_expired_budgets")
    return completed


def scheduler_heartbeat() -> None:
    if not refresh_scheduler_lock():
        logger.warning("Scheduler lock no longer held by this process")
    record_job_run("scheduler_heartbeat")


__all__ = [
    "TASK_HANDLERS",
    "complete_expired_budgets_once",
    "process_scheduled_tasks_once",
    "scheduler_heartbeat",
]
