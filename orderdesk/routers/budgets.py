"""Budget and allocation endpoints."""
from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.budget import PeriodType
from orderdesk.schemas.budget import (
    AllocationCreate,
    AllocationRead,
    AllocationUpdate,
    AvailabilityRead,
    BudgetAmountUpdate,
    BudgetCreate,
    BudgetRead,
    BudgetStatusUpdate,
    MemberBudgetRead,
    PeriodSummaryRead,
)
from orderdesk.security import Actor, require_actor
from orderdesk.services import ledger, rbac, reports
from orderdesk.services.availability import Availability, check_availability
from orderdesk.services.reports import AllocationView, BudgetView, MemberBudget, PeriodSummary

router = APIRouter(prefix="/budgets", tags=["budgets"])
allocations_router = APIRouter(prefix="/allocations", tags=["budgets"])


@router.post("", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
def create_budget(
    payload: BudgetCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> BudgetView:
    budget = ledger.create_budget(
        db,
        actor,
        payload.company_id,
        payload.period_type,
        payload.total_budget,
        period_start=payload.period_start,
    )
    return reports.budget_view(db, budget)


@router.get("", response_model=list[BudgetRead])
def list_budgets(
    company_id: int = Query(gt=0),
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[BudgetView]:
    return reports.list_budgets(db, actor, company_id, include_inactive=include_inactive)


@router.get("/summary", response_model=list[PeriodSummaryRead])
def budget_summary(
    company_id: int = Query(gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[PeriodSummary]:
    return reports.budget_summary(db, actor, company_id)


@router.get("/history", response_model=list[BudgetRead])
def budget_history(
    company_id: int = Query(gt=0),
    limit: int = Query(default=24, gt=0, le=200),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[BudgetView]:
    return reports.budget_history(db, actor, company_id, limit=limit)


@router.get("/availability", response_model=AvailabilityRead)
def availability(
    company_id: int = Query(gt=0),
    amount: Decimal = Query(ge=Decimal("0"), max_digits=18, decimal_places=2),
    period_type: PeriodType | None = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Availability:
    """Check whether the caller can spend ``amount`` from their current allocation."""

    member = rbac.require_company_member(db, actor, company_id)
    return check_availability(db, company_id, member.id, amount, period_type=period_type)


@router.get("/me", response_model=list[MemberBudgetRead])
def my_budget(
    company_id: int = Query(gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[MemberBudget]:
    return reports.my_budget(db, actor, company_id)


@router.get("/{budget_id}", response_model=BudgetRead)
def get_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> BudgetView:
    return reports.get_budget(db, actor, budget_id)


@router.patch("/{budget_id}", response_model=BudgetRead)
def update_budget_amount(
    budget_id: int,
    payload: BudgetAmountUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> BudgetView:
    budget = ledger.update_budget_amount(db, actor, budget_id, payload.total_budget)
    return reports.budget_view(db, budget)


@router.post("/{budget_id}/status", response_model=BudgetRead)
def set_budget_status(
    budget_id: int,
    payload: BudgetStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> BudgetView:
    budget = ledger.set_budget_status(db, actor, budget_id, payload.status)
    return reports.budget_view(db, budget)


@router.post(
    "/{budget_id}/allocations",
    response_model=AllocationRead,
    status_code=status.HTTP_201_CREATED,
)
def allocate(
    budget_id: int,
    payload: AllocationCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> AllocationView:
    allocation = ledger.allocate(db, actor, budget_id, payload.member_id, payload.amount)
    return reports.allocation_view(db, allocation)


@router.get("/{budget_id}/allocations", response_model=list[AllocationRead])
def list_allocations(
    budget_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[AllocationView]:
    return reports.list_allocations(db, actor, budget_id)


@allocations_router.patch("/{allocation_id}", response_model=AllocationRead)
def update_allocation(
    allocation_id: int,
    payload: AllocationUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> AllocationView:
    allocation = ledger.update_allocation(db, actor, allocation_id, payload.amount)
    return reports.allocation_view(db, allocation)
