"""Order lifecycle: creation from the cart, approval and fulfilment moves."""
from __future__ import annotations

import logging
import secrets
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from orderdesk.models.budget import Budget, BudgetStatus, EmployeeBudget
from orderdesk.models.notification import NotificationType
from orderdesk.models.order import Order, OrderItem, OrderStatus, PaymentSource
from orderdesk.models.company import MemberRole
from orderdesk.models.purchase_order import PurchaseOrder, PurchaseOrderStatus
from orderdesk.security import Actor
from orderdesk.services import rbac
from orderdesk.services.availability import check_availability
from orderdesk.services.cart import cart_total, clear_items, list_cart, price_items
from orderdesk.services.notifications import insert_notification, notify_company_admins
from orderdesk.services.order_state import ActorRole, TRANSITIONS, coerce_status, ensure_transition
from orderdesk.services.spend import (
    allocation_spent,
    is_recognized,
    refresh_allocation,
    refresh_budget,
    refresh_for_order,
)
from orderdesk.services.tasks import CREATE_PURCHASE_ORDER, schedule_task
from orderdesk.services.versioning import bump_version, lock_row
from orderdesk.utils.audit import actor_label, log_audit
from orderdesk.utils.errors import (
    BudgetExceededError,
    ConflictError,
    NotFoundError,
    Unauthorized,
    ValidationError,
)
from orderdesk.utils.money import to_money
from orderdesk.utils.time import utcnow

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

_STATUS_NOTIFICATIONS = {
    OrderStatus.SHIPPED: (NotificationType.ORDER_SHIPPED, "Order shipped", "has shipped"),
    OrderStatus.DELIVERED: (NotificationType.ORDER_DELIVERED, "Order delivered", "has been delivered"),
}


def generate_order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def coerce_payment_source(value: PaymentSource | str | None) -> PaymentSource | None:
    if value is None or isinstance(value, PaymentSource):
        return value
    try:
        return PaymentSource(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown payment source {value!r}.", code="INVALID_PAYMENT_SOURCE") from exc


def get_order_or_404(db: Session, order_id: int) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found.", code="ORDER_NOT_FOUND")
    return order


def _order_for_update(db: Session, order_id: int) -> Order:
    order = lock_row(db, Order, order_id)
    if order is None:
        raise NotFoundError("Order not found.", code="ORDER_NOT_FOUND")
    return order


def _existing_order(db: Session, idempotency_key: str | None) -> Order | None:
    if not idempotency_key:
        return None
    return db.scalars(select(Order).where(Order.idempotency_key == idempotency_key).limit(1)).first()


def _replay(order: Order, actor: Actor) -> Order:
    if order.user_id != actor.user_id:
        raise ConflictError(
            "Idempotency-Key already used for another order.", code="IDEMPOTENCY_KEY_REUSED"
        )
    logger.info("Idempotent order creation reused", extra={"order_id": order.id})
    return order


def create_order_from_cart(
    db: Session,
    actor: Actor | None,
    company_id: int,
    payment_source: PaymentSource | str | None = PaymentSource.COMPANY_BUDGET,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> Order:
    """Turn the member's cart into a pending order.

    Company-budget orders are bound to the member's current allocation and
    must fit its remaining amount. The order insert and the cart clearing
    commit together; a rejected order leaves the cart untouched.
    """

    member = rbac.require_company_member(db, actor, company_id)
    existing = _existing_order(db, idempotency_key)
    if existing is not None:
        return _replay(existing, actor)

    source = coerce_payment_source(payment_source)
    items = list_cart(db, actor, company_id)
    if not items:
        raise ValidationError("Cart is empty.", code="EMPTY_CART")
    lines = price_items(db, company_id, items)
    total = cart_total(lines)

    budget_id = employee_budget_id = None
    if source == PaymentSource.COMPANY_BUDGET:
        availability = check_availability(db, company_id, member.id, total)
        if not availability.available:
            logger.warning(
                "Order rejected by budget gate",
                extra={
                    "company_id": company_id,
                    "member_id": member.id,
                    "requested": str(total),
                    "remaining": str(availability.remaining),
                    "reason": availability.reason,
                },
            )
            raise BudgetExceededError(
                f"Order total exceeds available budget ({availability.reason}).",
                details={
                    "reason": availability.reason,
                    "requested": str(total),
                    "remaining": str(availability.remaining),
                },
            )
        budget_id = availability.budget_id
        employee_budget_id = availability.employee_budget_id

    now = utcnow()
    order = Order(
        company_id=company_id,
        user_id=member.user_id,
        order_number=generate_order_number(),
        total_amount=total,
        status=OrderStatus.PENDING_APPROVAL,
        payment_source=source,
        budget_id=budget_id,
        employee_budget_id=employee_budget_id,
        notes=notes,
        order_date=now,
        idempotency_key=idempotency_key or None,
    )
    db.add(order)
    for line in lines:
        order.items.append(
            OrderItem(
                product_type_id=line.item.product_type_id,
                product_variant_id=line.item.product_variant_id,
                size=line.item.size,
                quantity=line.item.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
        )
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = _existing_order(db, idempotency_key)
        if existing is None:
            raise
        return _replay(existing, actor)

    clear_items(db, items)
    log_audit(
        db,
        actor=actor_label(actor),
        action="create_order",
        entity="Order",
        entity_id=order.id,
        company_id=company_id,
        new_values={
            "order_number": order.order_number,
            "total_amount": total,
            "status": order.status,
            "payment_source": source,
            "employee_budget_id": employee_budget_id,
        },
    )
    notify_company_admins(
        db,
        company_id,
        type=NotificationType.APPROVAL_REQUIRED,
        title="Order awaiting approval",
        message=f"Order {order.order_number} for {total} needs approval.",
        data={"order_id": order.id},
    )
    db.commit()
    db.refresh(order)
    logger.info(
        "Order created",
        extra={"order_id": order.id, "company_id": company_id, "total_amount": str(total)},
    )
    return order


def apply_transition(
    db: Session,
    order: Order,
    target: OrderStatus,
    *,
    actor: str,
    **values: Any,
) -> OrderStatus:
    """Write ``target`` if the order still holds the status it was read with.

    Refreshes the spend caches when the move changes whether the order
    counts as spend, and audits the move. Does not commit.
    """

    previous = order.status
    stmt = (
        update(Order)
        .where(Order.id == order.id, Order.status == previous)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        db.rollback()
        raise ConflictError(
            "Order status changed concurrently, reload and retry.", code="CONCURRENT_UPDATE"
        )
    db.refresh(order)

    if is_recognized(previous) != is_recognized(target):
        refresh_for_order(db, order)

    log_audit(
        db,
        actor=actor,
        action="update_order_status",
        entity="Order",
        entity_id=order.id,
        company_id=order.company_id,
        old_values={"status": previous},
        new_values={"status": target, **values},
    )
    return previous


def approve_order(
    db: Session, actor: Actor | None, order_id: int, notes: str | None = None
) -> Order:
    """Approve a pending order, re-validating its allocation under row locks."""

    order = _order_for_update(db, order_id)
    admin = rbac.require_company_admin(db, actor, order.company_id)
    ensure_transition(order.status, OrderStatus.APPROVED, ActorRole.ADMIN)

    allocation: EmployeeBudget | None = None
    budget: Budget | None = None
    amount = to_money(order.total_amount)
    if order.employee_budget_id is not None:
        allocation = lock_row(db, EmployeeBudget, order.employee_budget_id)
        budget = lock_row(db, Budget, order.budget_id or allocation.budget_id)
        if budget is None or budget.status != BudgetStatus.ACTIVE:
            db.rollback()
            raise ConflictError("Order's budget is no longer active.", code="BUDGET_NOT_ACTIVE")

        spent = allocation_spent(db, allocation.id)
        allocated = to_money(allocation.allocated_amount)
        if spent + amount > allocated:
            db.rollback()
            logger.warning(
                "Approval rejected by budget gate",
                extra={
                    "order_id": order_id,
                    "allocation_id": allocation.id,
                    "spent": str(spent),
                    "requested": str(amount),
                    "allocated": str(allocated),
                },
            )
            raise BudgetExceededError(
                "Approving this order would exceed the member's allocation.",
                details={
                    "allocated": str(allocated),
                    "spent": str(spent),
                    "requested": str(amount),
                    "remaining": str(allocated - spent),
                },
            )

        if not bump_version(db, allocation, allocation.version) or not bump_version(
            db, budget, budget.version
        ):
            db.rollback()
            raise ConflictError(
                "Allocation was modified concurrently, retry the approval.",
                code="CONCURRENT_UPDATE",
            )

    values: dict[str, Any] = {"approved_by_id": admin.user_id, "approved_at": utcnow()}
    if notes:
        values["notes"] = notes
    apply_transition(db, order, OrderStatus.APPROVED, actor=actor_label(actor), **values)

    if allocation is not None and budget is not None:
        snapshot = refresh_allocation(db, allocation)
        if snapshot.spent > snapshot.allocated:
            db.rollback()
            logger.warning(
                "Approval rolled back after re-validation",
                extra={"order_id": order_id, "allocation_id": allocation.id, "spent": str(snapshot.spent)},
            )
            raise BudgetExceededError(
                "Approving this order would exceed the member's allocation.",
                details={"allocated": str(snapshot.allocated), "spent": str(snapshot.spent)},
            )
        refresh_budget(db, budget)

    schedule_task(db, CREATE_PURCHASE_ORDER, {"order_id": order.id})
    insert_notification(
        db,
        user_id=order.user_id,
        type=NotificationType.ORDER_APPROVED,
        title="Order approved",
        message=f"Your order {order.order_number} has been approved.",
        data={"order_id": order.id},
    )
    db.commit()
    db.refresh(order)
    logger.info(
        "Order approved",
        extra={"order_id": order.id, "approved_by": admin.user_id, "total_amount": str(amount)},
    )
    return order


def reject_order(db: Session, actor: Actor | None, order_id: int, reason: str | None) -> Order:
    """Reject a pending order; it never counted as spend, so the ledger is untouched."""

    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError("A rejection reason is required.", code="REJECTION_REASON_REQUIRED")

    order = _order_for_update(db, order_id)
    rbac.require_company_admin(db, actor, order.company_id)
    ensure_transition(order.status, OrderStatus.REJECTED, ActorRole.ADMIN)

    apply_transition(db, order, OrderStatus.REJECTED, actor=actor_label(actor), rejection_reason=cleaned)
    insert_notification(
        db,
        user_id=order.user_id,
        type=NotificationType.ORDER_REJECTED,
        title="Order rejected",
        message=f"Your order {order.order_number} was rejected: {cleaned}",
        data={"order_id": order.id, "reason": cleaned},
    )
    db.commit()
    db.refresh(order)
    logger.info("Order rejected", extra={"order_id": order.id})
    return order


def cancel_order(
    db: Session, actor: Actor | None, order_id: int, reason: str | None = None
) -> Order:
    """Cancel an approved or in-flight order.

    Its amount stops counting as spend on the next recomputation, which
    happens in this same transaction; no refund entry is written.
    """

    order = _order_for_update(db, order_id)
    rbac.require_company_admin(db, actor, order.company_id)
    ensure_transition(order.status, OrderStatus.CANCELLED, ActorRole.ADMIN)

    values: dict[str, Any] = {}
    if reason and reason.strip():
        values["cancellation_reason"] = reason.strip()
    apply_transition(db, order, OrderStatus.CANCELLED, actor=actor_label(actor), **values)

    purchase_order = db.scalars(select(PurchaseOrder).where(PurchaseOrder.order_id == order.id)).first()
    if purchase_order is not None and purchase_order.status != PurchaseOrderStatus.COMPLETED:
        purchase_order.status = PurchaseOrderStatus.CANCELLED

    db.commit()
    db.refresh(order)
    logger.info("Order cancelled", extra={"order_id": order.id})
    return order


def resolve_role(
    db: Session,
    actor: Actor | None,
    company_id: int,
    current: OrderStatus,
    target: OrderStatus,
) -> ActorRole:
    """Pick the role under which ``actor`` attempts a fulfilment move."""

    actor = rbac.require_actor(actor)
    member = rbac.find_membership(db, actor.user_id, company_id)
    is_admin = member is not None and member.role == MemberRole.ADMIN
    is_vendor = rbac.find_vendor_for_company(db, actor.user_id, company_id) is not None
    if not is_admin and not is_vendor:
        raise Unauthorized("Only company admins or vendors can update order status.")

    roles = TRANSITIONS.get((current, target), frozenset())
    if is_admin and ActorRole.ADMIN in roles:
        return ActorRole.ADMIN
    if is_vendor and ActorRole.VENDOR in roles:
        return ActorRole.VENDOR
    return ActorRole.ADMIN if is_admin else ActorRole.VENDOR


def _notify_progress(db: Session, order: Order, target: OrderStatus) -> None:
    entry = _STATUS_NOTIFICATIONS.get(target)
    if entry is None:
        return
    kind, title, verb = entry
    insert_notification(
        db,
        user_id=order.user_id,
        type=kind,
        title=title,
        message=f"Your order {order.order_number} {verb}.",
        data={"order_id": order.id},
    )


def advance_order(
    db: Session, actor: Actor | None, order_id: int, status: OrderStatus | str
) -> Order:
    """Move an order forward through fulfilment (vendor or admin driven)."""

    target = coerce_status(status)
    order = _order_for_update(db, order_id)
    role = resolve_role(db, actor, order.company_id, order.status, target)
    ensure_transition(order.status, target, role)

    previous = apply_transition(db, order, target, actor=actor_label(actor))
    _notify_progress(db, order, target)
    db.commit()
    db.refresh(order)
    logger.info(
        "Order status advanced",
        extra={"order_id": order.id, "from": previous.value, "to": target.value, "role": role.value},
    )
    return order


def confirm_for_fulfilment(db: Session, order: Order) -> None:
    """System move ``approved -> confirmed`` once a purchase order exists. Does not commit."""

    ensure_transition(order.status, OrderStatus.CONFIRMED, ActorRole.SYSTEM)
    apply_transition(db, order, OrderStatus.CONFIRMED, actor=SYSTEM_ACTOR)


def update_order_status(
    db: Session,
    actor: Actor | None,
    order_id: int,
    status: OrderStatus | str,
    *,
    reason: str | None = None,
    notes: str | None = None,
) -> Order:
    """Single entry point dispatching any target status to its operation."""

    target = coerce_status(status)
    if target == OrderStatus.APPROVED:
        return approve_order(db, actor, order_id, notes=notes)
    if target == OrderStatus.REJECTED:
        return reject_order(db, actor, order_id, reason)
    if target == OrderStatus.CANCELLED:
        return cancel_order(db, actor, order_id, reason)
    return advance_order(db, actor, order_id, target)


__all__ = [
    "SYSTEM_ACTOR",
    "advance_order",
    "apply_transition",
    "approve_order",
    "cancel_order",
    "confirm_for_fulfilment",
    "create_order_from_cart",
    "generate_order_number",
    "get_order_or_404",
    "reject_order",
    "resolve_role",
    "update_order_status",
]
