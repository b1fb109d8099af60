"""Budget ledger: company budgets per period and per-member allocations."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.models.budget import (
    Budget,
    BudgetPeriod,
    BudgetStatus,
    EmployeeBudget,
    PeriodType,
)
from orderdesk.models.company import Company, CompanyMember
from orderdesk.security import Actor
from orderdesk.services import rbac
from orderdesk.services.periods import calculate_period_bounds, periods_overlap
from orderdesk.services.spend import allocated_sum, allocation_spent, budget_spent
from orderdesk.services.versioning import bump_version, lock_row
from orderdesk.utils.audit import actor_label, log_audit
from orderdesk.utils.errors import (
    BudgetExceededError,
    ConflictError,
    DomainError,
    DuplicateAllocationError,
    InvalidReductionError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from orderdesk.utils.money import ZERO, parse_money, to_money

logger = logging.getLogger(__name__)

CLOSED_BUDGET_STATUSES = (BudgetStatus.COMPLETED, BudgetStatus.CANCELLED)


def _rejected(error: DomainError, message: str, **context: Any) -> DomainError:
    logger.warning(message, extra={"code": error.code, **context})
    return error


def positive_amount(value: Any, field: str) -> Decimal:
    """Parse a strictly positive money amount or raise ``ValidationError``."""

    try:
        amount = parse_money(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be a valid amount.", details={"field": field}) from exc
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than zero.", details={"field": field})
    return amount


def _budget_for_update(db: Session, budget_id: int) -> Budget:
    budget = lock_row(db, Budget, budget_id)
    if budget is None:
        raise NotFoundError("Budget not found.", code="BUDGET_NOT_FOUND")
    return budget


def _require_active(budget: Budget) -> None:
    if budget.status != BudgetStatus.ACTIVE:
        raise _rejected(
            ConflictError("Budget is not active.", code="BUDGET_NOT_ACTIVE"),
            "Ledger change on inactive budget",
            budget_id=budget.id,
            status=budget.status.value,
        )


def _claim_budget(db: Session, budget: Budget) -> None:
    """Serialise ledger writes on ``budget``; a lost race aborts the operation."""

    if not bump_version(db, budget, budget.version):
        db.rollback()
        raise _rejected(
            ConflictError(
                "Budget was modified concurrently, retry the operation.",
                code="CONCURRENT_UPDATE",
            ),
            "Budget version guard lost",
            budget_id=budget.id,
        )


def _budget_values(budget: Budget) -> dict[str, Any]:
    return {
        "period_type": budget.period_type,
        "period_start": budget.period_start,
        "period_end": budget.period_end,
        "total_budget": budget.total_budget,
        "status": budget.status,
    }


def find_overlapping_budget(
    db: Session,
    company_id: int,
    period_type: PeriodType,
    period_start,
    period_end,
) -> Budget | None:
    """Return an active budget of the same period type sharing any instant."""

    stmt = select(Budget).where(
        Budget.company_id == company_id,
        Budget.period_type == period_type,
        Budget.status == BudgetStatus.ACTIVE,
    )
    for budget in db.scalars(stmt):
        if periods_overlap(budget.period_start, budget.period_end, period_start, period_end):
            return budget
    return None


def create_budget(
    db: Session,
    actor: Actor | None,
    company_id: int,
    period_type: PeriodType | str,
    total_budget: Any,
    period_start=None,
) -> Budget:
    """Create an active budget for the calendar period containing ``period_start``.

    Anchors in ended periods are accepted so past budgets can be backfilled;
    the expiry job completes them on its next run.
    """

    member = rbac.require_company_admin(db, actor, company_id)
    amount = positive_amount(total_budget, "total_budget")
    bounds = calculate_period_bounds(period_type, period_start)

    # Serialise budget creation per company.
    lock_row(db, Company, company_id)
    existing = find_overlapping_budget(
        db, company_id, bounds.period_type, bounds.period_start, bounds.period_end
    )
    if existing is not None:
        db.rollback()
        raise _rejected(
            ConflictError(
                "An active budget already covers this period.",
                code="BUDGET_PERIOD_OVERLAP",
                details={"budget_id": existing.id},
            ),
            "Overlapping budget rejected",
            company_id=company_id,
            period_type=bounds.period_type.value,
            existing_budget_id=existing.id,
        )

    period = BudgetPeriod(
        company_id=company_id,
        period_type=bounds.period_type,
        period_start=bounds.period_start,
        period_end=bounds.period_end,
        budget_amount=amount,
        created_by_id=member.user_id,
    )
    db.add(period)
    db.flush()

    budget = Budget(
        company_id=company_id,
        budget_period_id=period.id,
        period_type=bounds.period_type,
        period_start=bounds.period_start,
        period_end=bounds.period_end,
        total_budget=amount,
        allocated_budget=ZERO,
        spent_budget=ZERO,
        remaining_budget=amount,
        status=BudgetStatus.ACTIVE,
        version=0,
    )
    db.add(budget)
    db.flush()
    log_audit(
        db,
        actor=actor_label(actor),
        action="create_budget",
        entity="Budget",
        entity_id=budget.id,
        company_id=company_id,
        new_values=_budget_values(budget),
    )
    db.commit()
    db.refresh(budget)
    logger.info(
        "Budget created",
        extra={
            "budget_id": budget.id,
            "company_id": company_id,
            "period_type": bounds.period_type.value,
            "total_budget": str(amount),
        },
    )
    return budget


def allocate(
    db: Session,
    actor: Actor | None,
    budget_id: int,
    member_id: int,
    amount: Any,
) -> EmployeeBudget:
    """Allocate part of an active budget to one company member."""

    budget = _budget_for_update(db, budget_id)
    rbac.require_company_admin(db, actor, budget.company_id)
    requested = positive_amount(amount, "amount")
    _require_active(budget)

    member = db.get(CompanyMember, member_id)
    if member is None or member.company_id != budget.company_id or not member.is_active:
        raise ValidationError(
            "Member does not belong to the budget's company.",
            code="MEMBER_NOT_IN_COMPANY",
            details={"member_id": member_id},
        )

    duplicate = db.scalars(
        select(EmployeeBudget).where(
            EmployeeBudget.budget_id == budget.id, EmployeeBudget.member_id == member_id
        )
    ).first()
    if duplicate is not None:
        raise _rejected(
            DuplicateAllocationError(
                "Member already has an allocation in this budget.",
                details={"allocation_id": duplicate.id},
            ),
            "Duplicate allocation rejected",
            budget_id=budget.id,
            member_id=member_id,
        )

    total = to_money(budget.total_budget)
    allocated = allocated_sum(db, budget.id)
    if allocated + requested > total:
        raise _rejected(
            BudgetExceededError(
                "Allocation exceeds the budget's unallocated amount.",
                details={
                    "total_budget": str(total),
                    "allocated": str(allocated),
                    "requested": str(requested),
                    "available": str(total - allocated),
                },
            ),
            "Allocation exceeds budget",
            budget_id=budget.id,
            member_id=member_id,
            requested=str(requested),
            available=str(total - allocated),
        )

    _claim_budget(db, budget)
    allocation = EmployeeBudget(
        budget_id=budget.id,
        member_id=member_id,
        allocated_amount=requested,
        spent_amount=ZERO,
        period_start=budget.period_start,
        period_end=budget.period_end,
        version=0,
    )
    db.add(allocation)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateAllocationError("Member already has an allocation in this budget.") from exc

    budget.allocated_budget = allocated + requested
    log_audit(
        db,
        actor=actor_label(actor),
        action="allocate_budget",
        entity="EmployeeBudget",
        entity_id=allocation.id,
        company_id=budget.company_id,
        new_values={"budget_id": budget.id, "member_id": member_id, "allocated_amount": requested},
    )
    db.commit()
    db.refresh(allocation)
    logger.info(
        "Budget allocated",
        extra={
            "budget_id": budget.id,
            "allocation_id": allocation.id,
            "member_id": member_id,
            "amount": str(requested),
        },
    )
    return allocation


def update_allocation(
    db: Session,
    actor: Actor | None,
    allocation_id: int,
    new_amount: Any,
) -> EmployeeBudget:
    """Change an allocation's amount, never below what has already been spent."""

    allocation = db.get(EmployeeBudget, allocation_id)
    if allocation is None:
        raise NotFoundError("Allocation not found.", code="ALLOCATION_NOT_FOUND")
    budget = _budget_for_update(db, allocation.budget_id)
    rbac.require_company_admin(db, actor, budget.company_id)
    amount = positive_amount(new_amount, "amount")
    _require_active(budget)

    allocation = lock_row(db, EmployeeBudget, allocation_id)
    old_amount = to_money(allocation.allocated_amount)
    spent = allocation_spent(db, allocation.id)
    if amount < spent:
        raise _rejected(
            InvalidReductionError(
                "Allocation cannot be reduced below the amount already spent.",
                details={"spent": str(spent), "requested": str(amount)},
            ),
            "Allocation reduction below spend rejected",
            allocation_id=allocation.id,
            spent=str(spent),
            requested=str(amount),
        )

    total = to_money(budget.total_budget)
    others = allocated_sum(db, budget.id) - old_amount
    if others + amount > total:
        raise _rejected(
            BudgetExceededError(
                "Allocation exceeds the budget's unallocated amount.",
                details={
                    "total_budget": str(total),
                    "allocated_to_others": str(others),
                    "requested": str(amount),
                    "available": str(total - others),
                },
            ),
            "Allocation update exceeds budget",
            allocation_id=allocation.id,
            requested=str(amount),
        )

    _claim_budget(db, budget)
    if not bump_version(db, allocation, allocation.version):
        db.rollback()
        raise ConflictError(
            "Allocation was modified concurrently, retry the operation.",
            code="CONCURRENT_UPDATE",
        )

    allocation.allocated_amount = amount
    allocation.spent_amount = spent
    budget.allocated_budget = others + amount
    log_audit(
        db,
        actor=actor_label(actor),
        action="update_allocation",
        entity="EmployeeBudget",
        entity_id=allocation.id,
        company_id=budget.company_id,
        old_values={"allocated_amount": old_amount},
        new_values={"allocated_amount": amount},
    )
    db.commit()
    db.refresh(allocation)
    logger.info(
        "Allocation updated",
        extra={"allocation_id": allocation.id, "old_amount": str(old_amount), "new_amount": str(amount)},
    )
    return allocation


def coerce_budget_status(value: BudgetStatus | str) -> BudgetStatus:
    if isinstance(value, BudgetStatus):
        return value
    try:
        return BudgetStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown budget status {value!r}.", code="INVALID_STATUS") from exc


def close_budget(db: Session, budget: Budget, target: BudgetStatus, *, actor: str) -> None:
    """Move a locked, active budget to a closed status inside the caller's transaction."""

    if budget.status != BudgetStatus.ACTIVE or target not in CLOSED_BUDGET_STATUSES:
        raise InvalidTransitionError(
            f"Budget cannot move from {budget.status.value} to {target.value}.",
            details={"from": budget.status.value, "to": target.value},
        )
    _claim_budget(db, budget)
    previous = budget.status
    budget.status = target
    log_audit(
        db,
        actor=actor,
        action="update_budget_status",
        entity="Budget",
        entity_id=budget.id,
        company_id=budget.company_id,
        old_values={"status": previous},
        new_values={"status": target},
    )


def set_budget_status(
    db: Session,
    actor: Actor | None,
    budget_id: int,
    status: BudgetStatus | str,
) -> Budget:
    """Complete or cancel an active budget."""

    budget = _budget_for_update(db, budget_id)
    rbac.require_company_admin(db, actor, budget.company_id)
    target = coerce_budget_status(status)
    close_budget(db, budget, target, actor=actor_label(actor))
    db.commit()
    db.refresh(budget)
    logger.info("Budget status changed", extra={"budget_id": budget.id, "status": target.value})
    return budget


def update_budget_amount(
    db: Session,
    actor: Actor | None,
    budget_id: int,
    total_budget: Any,
) -> Budget:
    """Change the total of an active budget that has no recognised spend yet."""

    budget = _budget_for_update(db, budget_id)
    rbac.require_company_admin(db, actor, budget.company_id)
    amount = positive_amount(total_budget, "total_budget")
    _require_active(budget)

    spent = budget_spent(db, budget.id)
    if spent > ZERO:
        raise _rejected(
            ConflictError(
                "Budget amount cannot change once spending has started.",
                code="BUDGET_HAS_SPEND",
                details={"spent": str(spent)},
            ),
            "Budget amount edit after spend rejected",
            budget_id=budget.id,
        )
    allocated = allocated_sum(db, budget.id)
    if amount < allocated:
        raise _rejected(
            InvalidReductionError(
                "Budget cannot be reduced below its allocations.",
                details={"allocated": str(allocated), "requested": str(amount)},
            ),
            "Budget reduction below allocations rejected",
            budget_id=budget.id,
        )

    _claim_budget(db, budget)
    old_amount = to_money(budget.total_budget)
    budget.total_budget = amount
    budget.allocated_budget = allocated
    budget.remaining_budget = amount - spent
    period = db.get(BudgetPeriod, budget.budget_period_id)
    if period is not None:
        period.budget_amount = amount
    log_audit(
        db,
        actor=actor_label(actor),
        action="update_budget",
        entity="Budget",
        entity_id=budget.id,
        company_id=budget.company_id,
        old_values={"total_budget": old_amount},
        new_values={"total_budget": amount},
    )
    db.commit()
    db.refresh(budget)
    logger.info(
        "Budget amount updated",
        extra={"budget_id": budget.id, "old_amount": str(old_amount), "new_amount": str(amount)},
    )
    return budget


__all__ = [
    "allocate",
    "close_budget",
    "coerce_budget_status",
    "create_budget",
    "find_overlapping_budget",
    "positive_amount",
    "set_budget_status",
    "update_allocation",
    "update_budget_amount",
]
