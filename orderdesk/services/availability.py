"""Budget availability gate.

Answers whether a member can spend a given amount right now. The answer is
computed from orders on every call and the function never writes.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.models.budget import Budget, BudgetStatus, EmployeeBudget, PeriodType
from orderdesk.services.periods import coerce_period_type, period_contains
from orderdesk.services.spend import allocation_spent
from orderdesk.utils.errors import ValidationError
from orderdesk.utils.money import ZERO, to_money
from orderdesk.utils.time import ensure_utc, utcnow

NO_ACTIVE_BUDGET = "no active budget"
NO_ALLOCATION = "no allocation"
INSUFFICIENT_BUDGET = "insufficient budget"

PERIOD_PREFERENCE = (PeriodType.MONTHLY, PeriodType.QUARTERLY, PeriodType.YEARLY)


@dataclass(frozen=True)
class Availability:
    available: bool
    remaining: Decimal
    reason: str | None = None
    budget_id: int | None = None
    employee_budget_id: int | None = None
    allocated: Decimal = ZERO
    spent: Decimal = ZERO


def find_active_budget(
    db: Session, company_id: int, period_type: PeriodType, at: datetime
) -> Budget | None:
    """Return the active budget of ``period_type`` whose window contains ``at``."""

    stmt = (
        select(Budget)
        .where(
            Budget.company_id == company_id,
            Budget.period_type == period_type,
            Budget.status == BudgetStatus.ACTIVE,
        )
        .order_by(Budget.period_start)
    )
    for budget in db.scalars(stmt):
        if period_contains(budget.period_start, budget.period_end, at):
            return budget
    return None


def find_allocation(db: Session, budget_id: int, member_id: int) -> EmployeeBudget | None:
    stmt = select(EmployeeBudget).where(
        EmployeeBudget.budget_id == budget_id, EmployeeBudget.member_id == member_id
    )
    return db.scalars(stmt).first()


def check_availability(
    db: Session,
    company_id: int,
    member_id: int,
    requested_amount: Any,
    period_type: PeriodType | str | None = None,
    at: datetime | None = None,
) -> Availability:
    """Check whether ``member_id`` can spend ``requested_amount`` at ``at``.

    Without ``period_type`` the monthly, quarterly and yearly budgets are
    tried in that order and the first one holding an allocation for the
    member wins.
    """

    try:
        requested = to_money(requested_amount)
    except ValueError as exc:
        raise ValidationError("requested_amount must be a valid amount.") from exc
    if requested < ZERO:
        raise ValidationError("requested_amount must not be negative.")

    moment = ensure_utc(at) if at is not None else utcnow()
    kinds = (coerce_period_type(period_type),) if period_type is not None else PERIOD_PREFERENCE

    first_budget: Budget | None = None
    for kind in kinds:
        budget = find_active_budget(db, company_id, kind, moment)
        if budget is None:
            continue
        if first_budget is None:
            first_budget = budget
        allocation = find_allocation(db, budget.id, member_id)
        if allocation is None:
            continue

        allocated = to_money(allocation.allocated_amount)
        spent = allocation_spent(db, allocation.id)
        remaining = allocated - spent
        available = requested <= remaining
        return Availability(
            available=available,
            remaining=remaining,
            reason=None if available else INSUFFICIENT_BUDGET,
            budget_id=budget.id,
            employee_budget_id=allocation.id,
            allocated=allocated,
            spent=spent,
        )

    if first_budget is None:
        return Availability(available=False, remaining=ZERO, reason=NO_ACTIVE_BUDGET)
    return Availability(
        available=False, remaining=ZERO, reason=NO_ALLOCATION, budget_id=first_budget.id
    )


__all__ = [
    "Availability",
    "INSUFFICIENT_BUDGET",
    "NO_ACTIVE_BUDGET",
    "NO_ALLOCATION",
    "PERIOD_PREFERENCE",
    "check_availability",
    "find_active_budget",
    "find_allocation",
]
