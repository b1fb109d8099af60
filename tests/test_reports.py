from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from orderdesk.models import OrderStatus, PeriodType, PurchaseOrder, PurchaseOrderStatus
from orderdesk.services import ledger, orders, reports
from orderdesk.services.cron import process_scheduled_tasks_once
from orderdesk.utils.errors import NotFoundError, Unauthorized, ValidationError
from orderdesk.utils.time import utcnow


def test_budget_summary_per_period_type(db_session, world, fund_member, place_order):
    budget, _ = fund_member(world, "400")
    place_order(world, world.employee, 2, approve=True)

    summary = {item.period_type: item for item in reports.budget_summary(db_session, world.admin, world.company.id)}

    monthly = summary[PeriodType.MONTHLY]
    assert monthly.budget_id == budget.id
    assert monthly.total_budget == Decimal("1000.00")
    assert monthly.allocated_budget == Decimal("400.00")
    assert monthly.spent_budget == Decimal("100.00")
    assert monthly.remaining_budget == Decimal("900.00")
    assert monthly.allocation_count == 1
    assert summary[PeriodType.YEARLY].budget_id is None
    assert summary[PeriodType.YEARLY].total_budget == Decimal("0.00")


def test_budget_view_exposes_unallocated(db_session, world, fund_member):
    budget, _ = fund_member(world, "250")

    view = reports.get_budget(db_session, world.admin, budget.id)

    assert view.unallocated_budget == Decimal("750.00")
    assert view.remaining_budget == Decimal("1000.00")
    with pytest.raises(Unauthorized):
        reports.get_budget(db_session, world.employee, budget.id)
    with pytest.raises(NotFoundError):
        reports.get_budget(db_session, world.admin, 999_999)


def test_my_budget_for_employee(db_session, world, fund_member, place_order):
    budget, allocation = fund_member(world, "300")
    place_order(world, world.employee, 1, approve=True)
    place_order(world, world.employee, 1)

    views = reports.my_budget(db_session, world.employee, world.company.id)

    assert len(views) == 1
    assert views[0].budget_id == budget.id
    assert views[0].allocation_id == allocation.id
    assert views[0].allocated == Decimal("300.00")
    assert views[0].spent == Decimal("50.00")
    assert views[0].remaining == Decimal("250.00")

    stats = reports.member_order_stats(db_session, world.employee, world.company.id)
    assert stats.order_count == 2
    assert stats.pending_count == 1
    assert stats.total_ordered == Decimal("100.00")
    assert stats.remaining == Decimal("250.00")


def test_member_without_allocation_sees_nothing(db_session, world, add_employee):
    actor, _ = add_employee(world)

    assert reports.my_budget(db_session, actor, world.company.id) == []
    stats = reports.member_order_stats(db_session, actor, world.company.id)
    assert stats.order_count == 0
    assert stats.allocated == Decimal("0.00")


def test_pending_approvals_lists_department(db_session, world, fund_member, place_order, add_employee):
    ops_actor, ops_member = add_employee(world, department="Ops")
    fund_member(world, "300")
    fund_member(world, "300", member=ops_member)
    sales_order = place_order(world, world.employee, 1)
    ops_order = place_order(world, ops_actor, 2)
    place_order(world, world.employee, 1, approve=True)

    pending = reports.pending_approvals(db_session, world.admin, world.company.id)

    assert [(row.order_id, row.department, row.total_amount) for row in pending] == [
        (sales_order.id, "Sales", Decimal("50.00")),
        (ops_order.id, "Ops", Decimal("100.00")),
    ]
    with pytest.raises(Unauthorized):
        reports.pending_approvals(db_session, world.employee, world.company.id)


def test_history_includes_closed_budgets(db_session, world):
    cancelled = ledger.create_budget(db_session, world.admin, world.company.id, "yearly", "5000")
    ledger.set_budget_status(db_session, world.admin, cancelled.id, "cancelled")
    active = ledger.create_budget(db_session, world.admin, world.company.id, "monthly", "500")

    history = reports.budget_history(db_session, world.admin, world.company.id)
    listed = reports.list_budgets(db_session, world.admin, world.company.id)

    assert {view.id for view in history} == {cancelled.id, active.id}
    assert [view.id for view in listed] == [active.id]


def test_allocation_listing(db_session, world, fund_member, add_employee):
    _, ops_member = add_employee(world)
    budget, first = fund_member(world, "100")
    _, second = fund_member(world, "200", member=ops_member)

    views = reports.list_allocations(db_session, world.admin, budget.id)

    assert [(view.id, view.department, view.allocated_amount) for view in views] == [
        (first.id, "Sales", Decimal("100.00")),
        (second.id, "Ops", Decimal("200.00")),
    ]


def test_order_listings(db_session, world, fund_member, place_order, add_employee):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1)
    other_actor, _ = add_employee(world)
    place_order(world, other_actor, 1, payment_source="personal")

    mine = reports.list_my_orders(db_session, world.employee)
    assert [item.id for item in mine] == [order.id]
    assert len(reports.list_company_orders(db_session, world.admin, world.company.id)) == 2
    assert len(reports.list_company_orders(db_session, world.admin, world.company.id, status="approved")) == 0
    orders.approve_order(db_session, world.admin, order.id)
    assert len(reports.list_company_orders(db_session, world.admin, world.company.id, status="approved")) == 1


def test_order_report_summary_and_breakdowns(db_session, world, fund_member, place_order, add_employee):
    ops, ops_member = add_employee(world)
    loner, loner_member = add_employee(world, department=None)
    fund_member(world, "300")
    fund_member(world, "300", member=ops_member)
    fund_member(world, "300", member=loner_member)
    place_order(world, world.employee, 2, approve=True)
    place_order(world, world.employee, 1)
    place_order(world, ops, 1, approve=True)
    place_order(world, loner, 3)

    report = reports.order_report(db_session, world.admin, world.company.id)

    assert report.summary.total_orders == 4
    assert report.summary.total_amount == Decimal("350.00")
    assert report.summary.average_order_value == Decimal("87.50")
    assert report.summary.status_breakdown == {"approved": 2, "pending_approval": 2}
    assert report.summary.department_breakdown == {"Sales": 2, "Ops": 1, reports.UNASSIGNED: 1}

    sales = reports.order_report(db_session, world.admin, world.company.id, department="Sales")
    assert [line.user_id for line in sales.orders] == [world.employee_user.id] * 2
    assert sales.summary.total_amount == Decimal("150.00")

    pending = reports.order_report(db_session, world.admin, world.company.id, status="pending_approval")
    assert {line.status for line in pending.orders} == {OrderStatus.PENDING_APPROVAL}


def test_order_report_date_window(db_session, world, fund_member, place_order):
    fund_member(world, "300")
    place_order(world, world.employee, 1)

    around_now = reports.order_report(
        db_session,
        world.admin,
        world.company.id,
        start_date=utcnow() - timedelta(hours=1),
        end_date=utcnow() + timedelta(hours=1),
    )
    assert around_now.summary.total_orders == 1

    tomorrow = reports.order_report(
        db_session, world.admin, world.company.id, start_date=utcnow() + timedelta(days=1)
    )
    assert tomorrow.orders == []
    assert tomorrow.summary.average_order_value == Decimal("0.00")

    with pytest.raises(ValidationError):
        reports.order_report(
            db_session,
            world.admin,
            world.company.id,
            start_date=utcnow(),
            end_date=utcnow() - timedelta(days=1),
        )
    with pytest.raises(Unauthorized):
        reports.order_report(db_session, world.employee, world.company.id)


def test_vendor_report_groups_purchase_orders(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    first = place_order(world, world.employee, 2, approve=True)
    place_order(world, world.employee, 1, approve=True)
    process_scheduled_tasks_once(db_session=db_session)
    done = db_session.scalars(select(PurchaseOrder).where(PurchaseOrder.order_id == first.id)).one()
    done.status = PurchaseOrderStatus.COMPLETED
    db_session.commit()

    report = reports.vendor_report(db_session, world.admin, world.company.id)

    assert len(report.purchase_orders) == 2
    [performance] = report.vendor_performance
    assert performance.vendor_id == world.vendor.id
    assert performance.vendor_name == "Print Shop"
    assert performance.total_purchase_orders == 2
    assert performance.completed_purchase_orders == 1
    assert performance.total_amount == Decimal("150.00")

    later = reports.vendor_report(
        db_session, world.admin, world.company.id, start_date=utcnow() + timedelta(days=1)
    )
    assert later.purchase_orders == []
    assert later.vendor_performance == []
    with pytest.raises(Unauthorized):
        reports.vendor_report(db_session, world.vendor_actor, world.company.id)
