"""Spend recomputation from orders.

Spend is never accumulated: it is the exact sum of ``Order.total_amount``
over the orders bound to an allocation (or budget) whose status is
recognised. Stored ``spent_*`` columns are caches written from these sums.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.models.budget import Budget, EmployeeBudget
from orderdesk.models.order import Order, OrderStatus
from orderdesk.utils.money import sum_money, to_money

logger = logging.getLogger(__name__)

RECOGNIZED_STATUSES = frozenset(
    {
        OrderStatus.APPROVED,
        OrderStatus.CONFIRMED,
        OrderStatus.IN_PRODUCTION,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    }
)


@dataclass(frozen=True)
class SpendSnapshot:
    """Figures derived at read time.

    For an allocation ``allocated`` is its allocated amount; for a budget it
    is the sum of its allocations while ``remaining`` is total minus spent.
    """

    allocated: Decimal
    spent: Decimal
    remaining: Decimal


def is_recognized(status: OrderStatus) -> bool:
    return status in RECOGNIZED_STATUSES


def allocation_spent(db: Session, allocation_id: int) -> Decimal:
    db.flush()
    stmt = select(Order.total_amount).where(
        Order.employee_budget_id == allocation_id,
        Order.status.in_(sorted(RECOGNIZED_STATUSES)),
    )
    return sum_money(db.scalars(stmt))


def budget_spent(db: Session, budget_id: int) -> Decimal:
    db.flush()
    stmt = select(Order.total_amount).where(
        Order.budget_id == budget_id,
        Order.status.in_(sorted(RECOGNIZED_STATUSES)),
    )
    return sum_money(db.scalars(stmt))


def allocated_sum(db: Session, budget_id: int) -> Decimal:
    db.flush()
    stmt = select(EmployeeBudget.allocated_amount).where(EmployeeBudget.budget_id == budget_id)
    return sum_money(db.scalars(stmt))


def allocation_snapshot(db: Session, allocation: EmployeeBudget) -> SpendSnapshot:
    allocated = to_money(allocation.allocated_amount)
    spent = allocation_spent(db, allocation.id)
    return SpendSnapshot(allocated=allocated, spent=spent, remaining=allocated - spent)


def budget_snapshot(db: Session, budget: Budget) -> SpendSnapshot:
    spent = budget_spent(db, budget.id)
    return SpendSnapshot(
        allocated=allocated_sum(db, budget.id),
        spent=spent,
        remaining=to_money(budget.total_budget) - spent,
    )


def refresh_allocation(db: Session, allocation: EmployeeBudget) -> SpendSnapshot:
    """Recompute an allocation's spend and rewrite its cache column."""

    snapshot = allocation_snapshot(db, allocation)
    allocation.spent_amount = snapshot.spent
    return snapshot


def refresh_budget(db: Session, budget: Budget) -> SpendSnapshot:
    """Recompute a budget's figures and rewrite its cache columns."""

    snapshot = budget_snapshot(db, budget)
    budget.allocated_budget = snapshot.allocated
    budget.spent_budget = snapshot.spent
    budget.remaining_budget = snapshot.remaining
    logger.debug(
        "Budget caches refreshed",
        extra={
            "budget_id": budget.id,
            "allocated": str(snapshot.allocated),
            "spent": str(snapshot.spent),
            "remaining": str(snapshot.remaining),
        },
    )
    return snapshot


def refresh_for_order(db: Session, order: Order) -> None:
    """Refresh the caches of the allocation and budget an order is bound to."""

    if order.employee_budget_id is not None:
        allocation = db.get(EmployeeBudget, order.employee_budget_id)
        if allocation is not None:
            refresh_allocation(db, allocation)
    if order.budget_id is not None:
        budget = db.get(Budget, order.budget_id)
        if budget is not None:
            refresh_budget(db, budget)


__all__ = [
    "RECOGNIZED_STATUSES",
    "SpendSnapshot",
    "allocated_sum",
    "allocation_snapshot",
    "allocation_spent",
    "budget_snapshot",
    "budget_spent",
    "is_recognized",
    "refresh_allocation",
    "refresh_budget",
    "refresh_for_order",
]
