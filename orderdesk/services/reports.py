"""Read-only dashboards over budgets and orders.

Every spent/remaining figure here is recomputed from orders; cache columns
are never returned as-is.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from orderdesk.models.budget import Budget, BudgetStatus, EmployeeBudget, PeriodType
from orderdesk.models.company import CompanyMember
from orderdesk.models.order import Order, OrderStatus
from orderdesk.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from orderdesk.models.user import User
from orderdesk.models.vendor import Vendor
from orderdesk.security import Actor
from orderdesk.services import rbac
from orderdesk.services.availability import PERIOD_PREFERENCE, find_active_budget, find_allocation
from orderdesk.services.order_state import coerce_status
from orderdesk.services.spend import SpendSnapshot, allocation_snapshot, budget_snapshot
from orderdesk.utils.errors import NotFoundError, ValidationError
from orderdesk.utils.money import ZERO, sum_money, to_money
from orderdesk.utils.time import ensure_utc, utcnow

UNASSIGNED = "Unassigned"


@dataclass(frozen=True)
class BudgetView:
    id: int
    company_id: int
    period_type: PeriodType
    period_start: datetime
    period_end: datetime
    status: BudgetStatus
    total_budget: Decimal
    allocated_budget: Decimal
    spent_budget: Decimal
    remaining_budget: Decimal
    unallocated_budget: Decimal
    version: int


@dataclass(frozen=True)
class AllocationView:
    id: int
    budget_id: int
    member_id: int
    user_id: int
    department: str | None
    allocated_amount: Decimal
    spent_amount: Decimal
    remaining_amount: Decimal
    period_start: datetime
    period_end: datetime


@dataclass(frozen=True)
class PeriodSummary:
    period_type: PeriodType
    budget_id: int | None
    total_budget: Decimal
    allocated_budget: Decimal
    spent_budget: Decimal
    remaining_budget: Decimal
    allocation_count: int


@dataclass(frozen=True)
class MemberBudget:
    period_type: PeriodType
    budget_id: int
    allocation_id: int
    period_start: datetime
    period_end: datetime
    allocated: Decimal
    spent: Decimal
    remaining: Decimal


@dataclass(frozen=True)
class MemberOrderStats:
    order_count: int
    pending_count: int
    total_ordered: Decimal
    allocated: Decimal
    spent: Decimal
    remaining: Decimal


@dataclass(frozen=True)
class PendingApproval:
    order_id: int
    order_number: str
    user_id: int
    username: str
    department: str | None
    total_amount: Decimal
    order_date: datetime
    employee_budget_id: int | None


@dataclass(frozen=True)
class OrderReportLine:
    order_id: int
    order_number: str
    user_id: int
    username: str
    department: str | None
    status: OrderStatus
    total_amount: Decimal
    order_date: datetime


@dataclass(frozen=True)
class OrderReportSummary:
    total_orders: int
    total_amount: Decimal
    average_order_value: Decimal
    status_breakdown: dict[str, int]
    department_breakdown: dict[str, int]


@dataclass(frozen=True)
class OrderReport:
    orders: list[OrderReportLine]
    summary: OrderReportSummary


@dataclass(frozen=True)
class VendorPerformance:
    vendor_id: int
    vendor_name: str
    total_purchase_orders: int
    completed_purchase_orders: int
    total_amount: Decimal


@dataclass(frozen=True)
class VendorReport:
    purchase_orders: list[PurchaseOrder]
    vendor_performance: list[VendorPerformance]


def budget_view(db: Session, budget: Budget, snapshot: SpendSnapshot | None = None) -> BudgetView:
    snapshot = snapshot or budget_snapshot(db, budget)
    total = to_money(budget.total_budget)
    return BudgetView(
        id=budget.id,
        company_id=budget.company_id,
        period_type=budget.period_type,
        period_start=ensure_utc(budget.period_start),
        period_end=ensure_utc(budget.period_end),
        status=budget.status,
        total_budget=total,
        allocated_budget=snapshot.allocated,
        spent_budget=snapshot.spent,
        remaining_budget=snapshot.remaining,
        unallocated_budget=total - snapshot.allocated,
        version=budget.version,
    )


def allocation_view(db: Session, allocation: EmployeeBudget) -> AllocationView:
    snapshot = allocation_snapshot(db, allocation)
    return AllocationView(
        id=allocation.id,
        budget_id=allocation.budget_id,
        member_id=allocation.member_id,
        user_id=allocation.member.user_id,
        department=allocation.member.department,
        allocated_amount=snapshot.allocated,
        spent_amount=snapshot.spent,
        remaining_amount=snapshot.remaining,
        period_start=ensure_utc(allocation.period_start),
        period_end=ensure_utc(allocation.period_end),
    )


def get_budget(db: Session, actor: Actor | None, budget_id: int) -> BudgetView:
    budget = db.get(Budget, budget_id)
    if budget is None:
        raise NotFoundError("Budget not found.", code="BUDGET_NOT_FOUND")
    rbac.require_company_manager(db, actor, budget.company_id)
    return budget_view(db, budget)


def list_budgets(
    db: Session, actor: Actor | None, company_id: int, *, include_inactive: bool = False
) -> list[BudgetView]:
    rbac.require_company_manager(db, actor, company_id)
    stmt = select(Budget).where(Budget.company_id == company_id)
    if not include_inactive:
        stmt = stmt.where(Budget.status == BudgetStatus.ACTIVE)
    stmt = stmt.order_by(Budget.period_start.desc(), Budget.id.desc())
    return [budget_view(db, budget) for budget in db.scalars(stmt)]


def budget_history(
    db: Session, actor: Actor | None, company_id: int, *, limit: int = 24
) -> list[BudgetView]:
    """Every budget of the company, newest period first, including closed ones."""

    rbac.require_company_manager(db, actor, company_id)
    stmt = (
        select(Budget)
        .where(Budget.company_id == company_id)
        .order_by(Budget.period_start.desc(), Budget.id.desc())
        .limit(limit)
    )
    return [budget_view(db, budget) for budget in db.scalars(stmt)]


def budget_summary(
    db: Session, actor: Actor | None, company_id: int, *, at: datetime | None = None
) -> list[PeriodSummary]:
    """Current figures per period type; period types without a budget report zeros."""

    rbac.require_company_manager(db, actor, company_id)
    moment = ensure_utc(at) if at is not None else utcnow()
    summaries: list[PeriodSummary] = []
    for kind in PERIOD_PREFERENCE:
        budget = find_active_budget(db, company_id, kind, moment)
        if budget is None:
            summaries.append(
                PeriodSummary(
                    period_type=kind,
                    budget_id=None,
                    total_budget=ZERO,
                    allocated_budget=ZERO,
                    spent_budget=ZERO,
                    remaining_budget=ZERO,
                    allocation_count=0,
                )
            )
            continue
        snapshot = budget_snapshot(db, budget)
        count = db.scalar(
            select(func.count(EmployeeBudget.id)).where(EmployeeBudget.budget_id == budget.id)
        )
        summaries.append(
            PeriodSummary(
                period_type=kind,
                budget_id=budget.id,
                total_budget=to_money(budget.total_budget),
                allocated_budget=snapshot.allocated,
                spent_budget=snapshot.spent,
                remaining_budget=snapshot.remaining,
                allocation_count=count or 0,
            )
        )
    return summaries


def list_allocations(db: Session, actor: Actor | None, budget_id: int) -> list[AllocationView]:
    budget = db.get(Budget, budget_id)
    if budget is None:
        raise NotFoundError("Budget not found.", code="BUDGET_NOT_FOUND")
    rbac.require_company_manager(db, actor, budget.company_id)
    stmt = (
        select(EmployeeBudget)
        .where(EmployeeBudget.budget_id == budget.id)
        .order_by(EmployeeBudget.id)
    )
    return [allocation_view(db, allocation) for allocation in db.scalars(stmt)]


def my_budget(
    db: Session, actor: Actor | None, company_id: int, *, at: datetime | None = None
) -> list[MemberBudget]:
    """The caller's allocations in the budgets currently running."""

    member = rbac.require_company_member(db, actor, company_id)
    moment = ensure_utc(at) if at is not None else utcnow()
    views: list[MemberBudget] = []
    for kind in PERIOD_PREFERENCE:
        budget = find_active_budget(db, company_id, kind, moment)
        if budget is None:
            continue
        allocation = find_allocation(db, budget.id, member.id)
        if allocation is None:
            continue
        snapshot = allocation_snapshot(db, allocation)
        views.append(
            MemberBudget(
                period_type=kind,
                budget_id=budget.id,
                allocation_id=allocation.id,
                period_start=ensure_utc(budget.period_start),
                period_end=ensure_utc(budget.period_end),
                allocated=snapshot.allocated,
                spent=snapshot.spent,
                remaining=snapshot.remaining,
            )
        )
    return views


def member_order_stats(db: Session, actor: Actor | None, company_id: int) -> MemberOrderStats:
    member = rbac.require_company_member(db, actor, company_id)
    rows = db.execute(
        select(Order.status, Order.total_amount).where(
            Order.company_id == company_id, Order.user_id == member.user_id
        )
    ).all()
    total_ordered = sum_money(amount for status, amount in rows if status != OrderStatus.CANCELLED)
    pending = sum(1 for status, _ in rows if status == OrderStatus.PENDING_APPROVAL)

    budgets = my_budget(db, actor, company_id)
    current = budgets[0] if budgets else None
    return MemberOrderStats(
        order_count=len(rows),
        pending_count=pending,
        total_ordered=total_ordered,
        allocated=current.allocated if current else ZERO,
        spent=current.spent if current else ZERO,
        remaining=current.remaining if current else ZERO,
    )


def pending_approvals(db: Session, actor: Actor | None, company_id: int) -> list[PendingApproval]:
    rbac.require_company_admin(db, actor, company_id)
    stmt = (
        select(Order, User.username, CompanyMember.department)
        .join(User, User.id == Order.user_id)
        .outerjoin(
            CompanyMember,
            (CompanyMember.user_id == Order.user_id) & (CompanyMember.company_id == Order.company_id),
        )
        .where(Order.company_id == company_id, Order.status == OrderStatus.PENDING_APPROVAL)
        .order_by(Order.order_date, Order.id)
    )
    return [
        PendingApproval(
            order_id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            username=username,
            department=department,
            total_amount=to_money(order.total_amount),
            order_date=ensure_utc(order.order_date),
            employee_budget_id=order.employee_budget_id,
        )
        for order, username, department in db.execute(stmt).all()
    ]


def _date_window(
    start_date: datetime | None, end_date: datetime | None
) -> tuple[datetime | None, datetime | None]:
    start = ensure_utc(start_date) if start_date is not None else None
    end = ensure_utc(end_date) if end_date is not None else None
    if start is not None and end is not None and start > end:
        raise ValidationError("start_date must not be after end_date.", details={"field": "start_date"})
    return start, end


def _in_window(moment: datetime, start: datetime | None, end: datetime | None) -> bool:
    moment = ensure_utc(moment)
    if start is not None and moment < start:
        return False
    return end is None or moment <= end


def order_report(
    db: Session,
    actor: Actor | None,
    company_id: int,
    *,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    status: OrderStatus | str | None = None,
    department: str | None = None,
) -> OrderReport:
    """Orders placed in ``[start_date, end_date]`` with count and amount breakdowns.

    Members without a department are grouped under ``Unassigned``.
    """

    rbac.require_company_admin(db, actor, company_id)
    start, end = _date_window(start_date, end_date)
    stmt = (
        select(Order, User.username, CompanyMember.department)
        .join(User, User.id == Order.user_id)
        .outerjoin(
            CompanyMember,
            (CompanyMember.user_id == Order.user_id) & (CompanyMember.company_id == Order.company_id),
        )
        .where(Order.company_id == company_id)
        .order_by(Order.order_date, Order.id)
    )
    if status is not None:
        stmt = stmt.where(Order.status == coerce_status(status))
    if department is not None:
        stmt = stmt.where(CompanyMember.department == department)

    lines = [
        OrderReportLine(
            order_id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            username=username,
            department=member_department,
            status=order.status,
            total_amount=to_money(order.total_amount),
            order_date=ensure_utc(order.order_date),
        )
        for order, username, member_department in db.execute(stmt).all()
        if _in_window(order.order_date, start, end)
    ]

    total_amount = sum_money(line.total_amount for line in lines)
    average = to_money(total_amount / len(lines)) if lines else ZERO
    by_status: Counter[str] = Counter(line.status.value for line in lines)
    by_department: Counter[str] = Counter(line.department or UNASSIGNED for line in lines)
    return OrderReport(
        orders=lines,
        summary=OrderReportSummary(
            total_orders=len(lines),
            total_amount=total_amount,
            average_order_value=average,
            status_breakdown=dict(by_status),
            department_breakdown=dict(by_department),
        ),
    )


def vendor_report(
    db: Session,
    actor: Actor | None,
    company_id: int,
    *,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> VendorReport:
    """Purchase orders created in the window and per-vendor totals."""

    rbac.require_company_admin(db, actor, company_id)
    start, end = _date_window(start_date, end_date)
    stmt = (
        select(PurchaseOrder, Vendor.name)
        .join(Vendor, Vendor.id == PurchaseOrder.vendor_id)
        .where(PurchaseOrder.company_id == company_id)
        .order_by(PurchaseOrder.created_at, PurchaseOrder.id)
    )
    rows = [
        (purchase_order, vendor_name)
        for purchase_order, vendor_name in db.execute(stmt).all()
        if _in_window(purchase_order.created_at, start, end)
    ]

    grouped: dict[int, list[PurchaseOrder]] = {}
    names: dict[int, str] = {}
    for purchase_order, vendor_name in rows:
        grouped.setdefault(purchase_order.vendor_id, []).append(purchase_order)
        names[purchase_order.vendor_id] = vendor_name

    performance = [
        VendorPerformance(
            vendor_id=vendor_id,
            vendor_name=names[vendor_id],
            total_purchase_orders=len(pos),
            completed_purchase_orders=sum(1 for po in pos if po.status == PurchaseOrderStatus.COMPLETED),
            total_amount=sum_money(po.total_amount for po in pos),
        )
        for vendor_id, pos in sorted(grouped.items(), key=lambda item: names[item[0]])
    ]
    return VendorReport(
        purchase_orders=[purchase_order for purchase_order, _ in rows],
        vendor_performance=performance,
    )


def list_company_orders(
    db: Session,
    actor: Actor | None,
    company_id: int,
    *,
    status: OrderStatus | str | None = None,
    limit: int = 100,
) -> list[Order]:
    rbac.require_company_manager(db, actor, company_id)
    stmt = select(Order).where(Order.company_id == company_id)
    if status is not None:
        stmt = stmt.where(Order.status == coerce_status(status))
    stmt = stmt.order_by(Order.id.desc()).limit(limit)
    return list(db.scalars(stmt))


def list_my_orders(
    db: Session, actor: Actor | None, *, company_id: int | None = None, limit: int = 100
) -> list[Order]:
    actor = rbac.require_actor(actor)
    stmt = select(Order).where(Order.user_id == actor.user_id)
    if company_id is not None:
        stmt = stmt.where(Order.company_id == company_id)
    stmt = stmt.order_by(Order.id.desc()).limit(limit)
    return list(db.scalars(stmt))


__all__ = [
    "AllocationView",
    "BudgetView",
    "MemberBudget",
    "MemberOrderStats",
    "OrderReport",
    "OrderReportLine",
    "OrderReportSummary",
    "PendingApproval",
    "PeriodSummary",
    "UNASSIGNED",
    "VendorPerformance",
    "VendorReport",
    "allocation_view",
    "budget_history",
    "budget_summary",
    "budget_view",
    "get_budget",
    "list_allocations",
    "list_budgets",
    "list_company_orders",
    "list_my_orders",
    "member_order_stats",
    "my_budget",
    "order_report",
    "pending_approvals",
    "vendor_report",
]
