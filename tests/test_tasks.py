from datetime import timedelta

import pytest
from sqlalchemy import select

from orderdesk.models import (
    AuditLog,
    Budget,
    BudgetStatus,
    Notification,
    NotificationType,
    OrderStatus,
    PurchaseOrder,
    PurchaseOrderItemStatus,
    PurchaseOrderStatus,
    ScheduledTask,
    ScheduledTaskStatus,
)
from orderdesk.services import ledger, orders
from orderdesk.services.cron import (
    TASK_HANDLERS,
    complete_expired_budgets_once,
    process_scheduled_tasks_once,
)
from orderdesk.services.purchase_orders import update_item_status
from orderdesk.services.tasks import CREATE_PURCHASE_ORDER, run_pending_tasks, schedule_task
from orderdesk.utils.errors import ConflictError, Unauthorized
from orderdesk.utils.time import utcnow


def _purchase_order(db_session, order_id):
    return db_session.scalars(select(PurchaseOrder).where(PurchaseOrder.order_id == order_id)).one()


def test_purchase_order_created_from_outbox(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 2, approve=True)

    stats = process_scheduled_tasks_once(db_session=db_session)

    assert stats == {"done": 1, "retry": 0, "failed": 0}
    purchase_order = _purchase_order(db_session, order.id)
    assert purchase_order.status == PurchaseOrderStatus.SENT
    assert purchase_order.vendor_id == world.vendor.id
    assert purchase_order.po_number.startswith("PO-")
    assert [item.status for item in purchase_order.items] == [PurchaseOrderItemStatus.PENDING]
    db_session.refresh(order)
    assert order.status == OrderStatus.CONFIRMED

    notices = db_session.scalars(
        select(Notification).where(
            Notification.user_id == world.vendor_user.id, Notification.type == NotificationType.PO_CREATED
        )
    ).all()
    assert len(notices) == 1
    task = db_session.scalars(select(ScheduledTask)).one()
    assert task.status == ScheduledTaskStatus.DONE
    assert task.attempts == 1
    assert task.completed_at is not None


def test_purchase_order_handler_is_idempotent(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1, approve=True)
    process_scheduled_tasks_once(db_session=db_session)

    schedule_task(db_session, CREATE_PURCHASE_ORDER, {"order_id": order.id})
    db_session.commit()
    stats = process_scheduled_tasks_once(db_session=db_session)

    assert stats["done"] == 1
    assert len(db_session.scalars(select(PurchaseOrder)).all()) == 1


def test_missing_vendor_retries_then_fails(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    world.vendor.is_active = False
    db_session.commit()
    order = place_order(world, world.employee, 1, approve=True)

    first = run_pending_tasks(db_session, TASK_HANDLERS, max_attempts=2)
    second = run_pending_tasks(db_session, TASK_HANDLERS, max_attempts=2)

    assert first == {"done": 0, "retry": 1, "failed": 0}
    assert second == {"done": 0, "retry": 0, "failed": 1}
    task = db_session.scalars(select(ScheduledTask)).one()
    assert task.status == ScheduledTaskStatus.FAILED
    assert task.attempts == 2
    assert "NO_ACTIVE_VENDOR" in task.last_error
    db_session.refresh(order)
    assert order.status == OrderStatus.APPROVED
    assert run_pending_tasks(db_session, TASK_HANDLERS, max_attempts=2) == {"done": 0, "retry": 0, "failed": 0}


def test_unknown_task_kind_fails(db_session):
    schedule_task(db_session, "send_fax", {"to": "nobody"})
    db_session.commit()

    stats = run_pending_tasks(db_session, TASK_HANDLERS, max_attempts=3)

    assert stats["failed"] == 1
    task = db_session.scalars(select(ScheduledTask)).one()
    assert task.status == ScheduledTaskStatus.FAILED
    assert "send_fax" in task.last_error


def test_order_cancelled_before_processing_gets_no_purchase_order(
    db_session, world, fund_member, place_order
):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1, approve=True)
    orders.cancel_order(db_session, world.admin, order.id, "Changed mind")

    stats = process_scheduled_tasks_once(db_session=db_session)

    assert stats["done"] == 1
    assert db_session.scalars(select(PurchaseOrder)).first() is None
    db_session.refresh(order)
    assert order.status == OrderStatus.CANCELLED


def test_vendor_progress_on_items(db_session, world, fund_member, place_order, make_company):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1, approve=True)
    second_order = place_order(world, world.employee, 2, approve=True)
    process_scheduled_tasks_once(db_session=db_session)
    purchase_order = _purchase_order(db_session, order.id)
    item = purchase_order.items[0]

    updated = update_item_status(db_session, world.vendor_actor, purchase_order.id, item.id, "in_production")
    assert updated.status == PurchaseOrderStatus.IN_PROGRESS

    updated = update_item_status(db_session, world.vendor_actor, purchase_order.id, item.id, "completed")
    assert updated.status == PurchaseOrderStatus.COMPLETED

    other = make_company("globex")
    with pytest.raises(Unauthorized):
        update_item_status(db_session, other.vendor_actor, purchase_order.id, item.id, "approved")
    with pytest.raises(Unauthorized):
        update_item_status(db_session, world.employee, purchase_order.id, item.id, "approved")

    second = _purchase_order(db_session, second_order.id)
    orders.cancel_order(db_session, world.admin, second_order.id)
    db_session.refresh(second)
    assert second.status == PurchaseOrderStatus.CANCELLED
    with pytest.raises(ConflictError):
        update_item_status(db_session, world.vendor_actor, second.id, second.items[0].id, "approved")


def test_expired_budgets_are_completed(db_session, world):
    last_month = utcnow().replace(day=1) - timedelta(days=1)
    expired = ledger.create_budget(db_session, world.admin, world.company.id, "monthly", "500", last_month)
    current = ledger.create_budget(db_session, world.admin, world.company.id, "monthly", "500")

    assert complete_expired_budgets_once(db_session=db_session) == 1

    assert db_session.get(Budget, expired.id).status == BudgetStatus.COMPLETED
    assert db_session.get(Budget, current.id).status == BudgetStatus.ACTIVE
    entry = db_session.scalars(
        select(AuditLog).where(AuditLog.action == "update_budget_status", AuditLog.entity_id == str(expired.id))
    ).one()
    assert entry.actor == "system"
    assert entry.new_values == {"status": "completed"}
    assert complete_expired_budgets_once(db_session=db_session) == 0
