from decimal import Decimal

import pytest
from sqlalchemy import select, update

from orderdesk.models import (
    AuditLog,
    CartItem,
    Notification,
    NotificationType,
    Order,
    OrderStatus,
    PaymentSource,
    PurchaseOrder,
    PurchaseOrderStatus,
    ScheduledTask,
    ScheduledTaskStatus,
)
from orderdesk.services import cart, orders
from orderdesk.services.cron import process_scheduled_tasks_once
from orderdesk.services.spend import allocation_spent
from orderdesk.services.tasks import CREATE_PURCHASE_ORDER
from orderdesk.utils.errors import (
    BudgetExceededError,
    ConflictError,
    InvalidTransitionError,
    Unauthorized,
    ValidationError,
)


def _cart_count(db_session, world, actor) -> int:
    return len(cart.list_cart(db_session, actor, world.company.id))


def _notifications(db_session, user_id, kind):
    return list(
        db_session.scalars(
            select(Notification).where(Notification.user_id == user_id, Notification.type == kind)
        )
    )


def test_create_order_from_cart(db_session, world, fund_member, place_order):
    budget, allocation = fund_member(world, "500")

    order = place_order(world, world.employee, 3)

    assert order.status == OrderStatus.PENDING_APPROVAL
    assert order.total_amount == Decimal("150.00")
    assert order.payment_source == PaymentSource.COMPANY_BUDGET
    assert order.employee_budget_id == allocation.id
    assert order.order_number.startswith("ORD-")
    assert [(item.size, item.quantity, item.line_total) for item in order.items] == [
        ("M", 3, Decimal("150.00"))
    ]
    assert _cart_count(db_session, world, world.employee) == 0
    assert len(_notifications(db_session, world.admin_user.id, NotificationType.APPROVAL_REQUIRED)) == 1


def test_empty_cart_rejected(db_session, world, fund_member):
    fund_member(world, "500")
    with pytest.raises(ValidationError) as exc_info:
        orders.create_order_from_cart(db_session, world.employee, world.company.id)
    assert exc_info.value.code == "EMPTY_CART"


def test_order_over_budget_leaves_cart_untouched(db_session, world, fund_member):
    fund_member(world, "100")
    cart.add_to_cart(db_session, world.employee, world.company.id, world.variant.id, "M", 2)
    cart.add_to_cart(db_session, world.employee, world.company.id, world.variant.id, "L", 1)
    before = _cart_count(db_session, world, world.employee)

    with pytest.raises(BudgetExceededError) as exc_info:
        orders.create_order_from_cart(db_session, world.employee, world.company.id)

    assert exc_info.value.details["requested"] == "150.00"
    assert _cart_count(db_session, world, world.employee) == before == 2
    assert db_session.scalars(select(Order)).first() is None


def test_personal_payment_skips_budget_gate(db_session, world, place_order):
    order = place_order(world, world.employee, 10, payment_source="personal")

    assert order.payment_source == PaymentSource.PERSONAL
    assert order.budget_id is None
    assert order.employee_budget_id is None


def test_idempotency_key_replays_order(db_session, world, fund_member, add_employee):
    fund_member(world, "500")
    cart.add_to_cart(db_session, world.employee, world.company.id, world.variant.id, "S", 1)

    first = orders.create_order_from_cart(
        db_session, world.employee, world.company.id, idempotency_key="checkout-1"
    )
    again = orders.create_order_from_cart(
        db_session, world.employee, world.company.id, idempotency_key="checkout-1"
    )
    assert again.id == first.id

    other, _ = add_employee(world)
    with pytest.raises(ConflictError) as exc_info:
        orders.create_order_from_cart(db_session, other, world.company.id, idempotency_key="checkout-1")
    assert exc_info.value.code == "IDEMPOTENCY_KEY_REUSED"


def test_approve_order(db_session, world, fund_member, place_order):
    _, allocation = fund_member(world, "500")
    order = place_order(world, world.employee, 2)

    approved = orders.approve_order(db_session, world.admin, order.id, notes="ok")

    assert approved.status == OrderStatus.APPROVED
    assert approved.approved_by_id == world.admin_user.id
    assert approved.approved_at is not None
    assert approved.notes == "ok"
    assert allocation_spent(db_session, allocation.id) == Decimal("100.00")

    task = db_session.scalars(select(ScheduledTask)).one()
    assert task.kind == CREATE_PURCHASE_ORDER
    assert task.payload == {"order_id": order.id}
    assert task.status == ScheduledTaskStatus.PENDING
    assert len(_notifications(db_session, world.employee_user.id, NotificationType.ORDER_APPROVED)) == 1

    entry = db_session.scalars(
        select(AuditLog).where(AuditLog.action == "update_order_status", AuditLog.entity_id == str(order.id))
    ).one()
    assert entry.old_values == {"status": "pending_approval"}
    assert entry.new_values["status"] == "approved"


def test_second_approval_rejected_by_revalidation(db_session, world, fund_member, place_order):
    _, allocation = fund_member(world, "200")
    first = place_order(world, world.employee, 3)  # 150.00
    second = place_order(world, world.employee, 2)  # 100.00, fits while first is pending

    orders.approve_order(db_session, world.admin, first.id)
    with pytest.raises(BudgetExceededError) as exc_info:
        orders.approve_order(db_session, world.admin, second.id)

    assert exc_info.value.details["remaining"] == "50.00"
    db_session.refresh(second)
    assert second.status == OrderStatus.PENDING_APPROVAL
    assert allocation_spent(db_session, allocation.id) == Decimal("150.00")
    assert len(db_session.scalars(select(ScheduledTask)).all()) == 1


def test_only_admin_approves(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1)

    with pytest.raises(Unauthorized):
        orders.approve_order(db_session, world.employee, order.id)
    with pytest.raises(Unauthorized):
        orders.approve_order(db_session, world.vendor_actor, order.id)


def test_approving_twice_is_invalid(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1, approve=True)

    with pytest.raises(InvalidTransitionError):
        orders.approve_order(db_session, world.admin, order.id)


def test_reject_requires_reason(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1)

    with pytest.raises(ValidationError) as exc_info:
        orders.reject_order(db_session, world.admin, order.id, "   ")
    assert exc_info.value.code == "REJECTION_REASON_REQUIRED"

    rejected = orders.reject_order(db_session, world.admin, order.id, " Over quota ")
    assert rejected.status == OrderStatus.REJECTED
    assert rejected.rejection_reason == "Over quota"
    assert len(_notifications(db_session, world.employee_user.id, NotificationType.ORDER_REJECTED)) == 1
    assert db_session.scalars(select(ScheduledTask)).first() is None


def test_pending_order_cannot_be_cancelled(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1)

    with pytest.raises(InvalidTransitionError):
        orders.cancel_order(db_session, world.admin, order.id)


def test_stale_status_write_is_a_conflict(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1)
    db_session.execute(
        update(Order)
        .where(Order.id == order.id)
        .values(status=OrderStatus.REJECTED)
        .execution_options(synchronize_session=False)
    )
    db_session.commit()
    assert order.status == OrderStatus.PENDING_APPROVAL

    with pytest.raises(ConflictError) as exc_info:
        orders.apply_transition(db_session, order, OrderStatus.APPROVED, actor="system")
    assert exc_info.value.code == "CONCURRENT_UPDATE"


def test_full_fulfilment_flow(db_session, world, fund_member, place_order):
    _, allocation = fund_member(world, "500")
    order = place_order(world, world.employee, 2, approve=True)

    process_scheduled_tasks_once(db_session=db_session)
    db_session.refresh(order)
    assert order.status == OrderStatus.CONFIRMED

    with pytest.raises(Unauthorized):
        orders.update_order_status(db_session, world.employee, order.id, "in_production")

    order = orders.update_order_status(db_session, world.vendor_actor, order.id, "in_production")
    order = orders.update_order_status(db_session, world.vendor_actor, order.id, "shipped")
    assert len(_notifications(db_session, world.employee_user.id, NotificationType.ORDER_SHIPPED)) == 1

    with pytest.raises(Unauthorized):
        orders.update_order_status(db_session, world.vendor_actor, order.id, "cancelled")

    order = orders.update_order_status(db_session, world.admin, order.id, "delivered")
    assert order.status == OrderStatus.DELIVERED
    assert len(_notifications(db_session, world.employee_user.id, NotificationType.ORDER_DELIVERED)) == 1
    assert allocation_spent(db_session, allocation.id) == Decimal("100.00")

    with pytest.raises(InvalidTransitionError):
        orders.update_order_status(db_session, world.admin, order.id, "cancelled")
    with pytest.raises(InvalidTransitionError):
        orders.update_order_status(db_session, world.admin, order.id, "confirmed")

    transitions = db_session.scalars(
        select(AuditLog.new_values).where(
            AuditLog.action == "update_order_status", AuditLog.entity_id == str(order.id)
        ).order_by(AuditLog.id)
    ).all()
    assert [values["status"] for values in transitions] == [
        "approved",
        "confirmed",
        "in_production",
        "shipped",
        "delivered",
    ]


def test_cancel_shipped_order_cancels_purchase_order(db_session, world, fund_member, place_order):
    _, allocation = fund_member(world, "500")
    order = place_order(world, world.employee, 2, approve=True)
    process_scheduled_tasks_once(db_session=db_session)
    orders.update_order_status(db_session, world.vendor_actor, order.id, "in_production")
    orders.update_order_status(db_session, world.vendor_actor, order.id, "shipped")

    cancelled = orders.cancel_order(db_session, world.admin, order.id, "Lost in transit")

    assert cancelled.status == OrderStatus.CANCELLED
    assert allocation_spent(db_session, allocation.id) == Decimal("0.00")
    purchase_order = db_session.scalars(select(PurchaseOrder).where(PurchaseOrder.order_id == order.id)).one()
    assert purchase_order.status == PurchaseOrderStatus.CANCELLED


def test_cancel_reason_is_kept_apart_from_rejection_reason(db_session, world, fund_member, place_order):
    fund_member(world, "500")
    order = place_order(world, world.employee, 1, approve=True)

    cancelled = orders.cancel_order(db_session, world.admin, order.id, "  Duplicate request ")

    assert cancelled.cancellation_reason == "Duplicate request"
    assert cancelled.rejection_reason is None
    entry = db_session.scalars(
        select(AuditLog)
        .where(AuditLog.action == "update_order_status", AuditLog.entity_id == str(order.id))
        .order_by(AuditLog.id.desc())
    ).first()
    assert entry.new_values == {"status": "cancelled", "cancellation_reason": "Duplicate request"}
