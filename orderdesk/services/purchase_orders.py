"""Purchase orders sent to vendors for approved orders."""
from __future__ import annotations

import logging
import secrets
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.models.notification import NotificationType
from orderdesk.models.order import Order, OrderStatus
from orderdesk.models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderItemStatus,
    PurchaseOrderStatus,
)
from orderdesk.models.vendor import Vendor, VendorMember
from orderdesk.security import Actor
from orderdesk.services import rbac
from orderdesk.services.notifications import insert_notification
from orderdesk.services.orders import SYSTEM_ACTOR, confirm_for_fulfilment
from orderdesk.utils.audit import actor_label, log_audit
from orderdesk.utils.errors import ConflictError, NotFoundError, Unauthorized, ValidationError
from orderdesk.utils.time import utcnow

logger = logging.getLogger(__name__)


def generate_po_number() -> str:
    return f"PO-{utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def first_active_vendor(db: Session, company_id: int) -> Vendor | None:
    stmt = (
        select(Vendor)
        .where(Vendor.company_id == company_id, Vendor.is_active.is_(True))
        .order_by(Vendor.id)
    )
    return db.scalars(stmt).first()


def vendor_user_ids(db: Session, vendor_id: int) -> list[int]:
    stmt = select(VendorMember.user_id).where(
        VendorMember.vendor_id == vendor_id, VendorMember.is_active.is_(True)
    )
    return list(db.scalars(stmt))


def handle_create_purchase_order(db: Session, payload: dict[str, Any]) -> None:
    """Outbox handler: create the purchase order for an approved order.

    Runs inside the worker's transaction and leaves the commit to it.
    Orders that already have a purchase order, or that left the approved
    state in the meantime, are skipped.
    """

    order_id = int(payload["order_id"])
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found.", code="ORDER_NOT_FOUND")

    existing = db.scalars(select(PurchaseOrder).where(PurchaseOrder.order_id == order_id)).first()
    if existing is not None:
        logger.info("Purchase order already exists", extra={"order_id": order_id, "po_id": existing.id})
        return
    if order.status not in (OrderStatus.APPROVED, OrderStatus.CONFIRMED):
        logger.info(
            "Skipping purchase order for order no longer approved",
            extra={"order_id": order_id, "status": order.status.value},
        )
        return

    vendor = first_active_vendor(db, order.company_id)
    if vendor is None:
        raise ConflictError("No active vendor for company.", code="NO_ACTIVE_VENDOR")

    purchase_order = PurchaseOrder(
        company_id=order.company_id,
        vendor_id=vendor.id,
        order_id=order.id,
        po_number=generate_po_number(),
        status=PurchaseOrderStatus.SENT,
        total_amount=order.total_amount,
        notes=order.notes,
    )
    for item in order.items:
        purchase_order.items.append(
            PurchaseOrderItem(
                order_item_id=item.id,
                size=item.size,
                quantity=item.quantity,
                unit_price=item.unit_price,
                status=PurchaseOrderItemStatus.PENDING,
            )
        )
    db.add(purchase_order)
    db.flush()

    if order.status == OrderStatus.APPROVED:
        confirm_for_fulfilment(db, order)

    for user_id in vendor_user_ids(db, vendor.id):
        insert_notification(
            db,
            user_id=user_id,
            type=NotificationType.PO_CREATED,
            title="New purchase order",
            message=f"Purchase order {purchase_order.po_number} is ready.",
            data={"purchase_order_id": purchase_order.id, "order_id": order.id},
        )
    log_audit(
        db,
        actor=SYSTEM_ACTOR,
        action="create_purchase_order",
        entity="PurchaseOrder",
        entity_id=purchase_order.id,
        company_id=order.company_id,
        new_values={"order_id": order.id, "vendor_id": vendor.id, "po_number": purchase_order.po_number},
    )
    logger.info(
        "Purchase order created",
        extra={"order_id": order.id, "po_id": purchase_order.id, "vendor_id": vendor.id},
    )


def coerce_item_status(value: PurchaseOrderItemStatus | str) -> PurchaseOrderItemStatus:
    if isinstance(value, PurchaseOrderItemStatus):
        return value
    try:
        return PurchaseOrderItemStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown item status {value!r}.", code="INVALID_STATUS") from exc


def update_item_status(
    db: Session,
    actor: Actor | None,
    purchase_order_id: int,
    item_id: int,
    status: PurchaseOrderItemStatus | str,
) -> PurchaseOrder:
    """Vendor progress on one purchase order line."""

    target = coerce_item_status(status)
    purchase_order = db.get(PurchaseOrder, purchase_order_id)
    if purchase_order is None:
        raise NotFoundError("Purchase order not found.", code="PURCHASE_ORDER_NOT_FOUND")
    vendor = rbac.require_vendor_for_company(db, actor, purchase_order.company_id)
    if vendor.id != purchase_order.vendor_id:
        raise Unauthorized("Purchase order belongs to another vendor.", code="NOT_A_VENDOR")
    if purchase_order.status == PurchaseOrderStatus.CANCELLED:
        raise ConflictError("Purchase order is cancelled.", code="PURCHASE_ORDER_CANCELLED")

    item = db.get(PurchaseOrderItem, item_id)
    if item is None or item.purchase_order_id != purchase_order.id:
        raise NotFoundError("Purchase order item not found.", code="PURCHASE_ORDER_ITEM_NOT_FOUND")

    previous = item.status
    item.status = target
    db.flush()
    statuses = {line.status for line in purchase_order.items}
    if statuses == {PurchaseOrderItemStatus.COMPLETED}:
        purchase_order.status = PurchaseOrderStatus.COMPLETED
    elif statuses != {PurchaseOrderItemStatus.PENDING} and purchase_order.status in (
        PurchaseOrderStatus.SENT,
        PurchaseOrderStatus.ACKNOWLEDGED,
    ):
        purchase_order.status = PurchaseOrderStatus.IN_PROGRESS

    log_audit(
        db,
        actor=actor_label(actor),
        action="update_purchase_order_item",
        entity="PurchaseOrderItem",
        entity_id=item.id,
        company_id=purchase_order.company_id,
        old_values={"status": previous},
        new_values={"status": target, "purchase_order_status": purchase_order.status},
    )
    db.commit()
    db.refresh(purchase_order)
    return purchase_order


def list_company_purchase_orders(db: Session, actor: Actor | None, company_id: int) -> list[PurchaseOrder]:
    rbac.require_company_manager(db, actor, company_id)
    stmt = (
        select(PurchaseOrder)
        .where(PurchaseOrder.company_id == company_id)
        .order_by(PurchaseOrder.id.desc())
    )
    return list(db.scalars(stmt))


def list_vendor_purchase_orders(db: Session, actor: Actor | None) -> list[PurchaseOrder]:
    actor = rbac.require_actor(actor)
    stmt = (
        select(PurchaseOrder)
        .join(VendorMember, VendorMember.vendor_id == PurchaseOrder.vendor_id)
        .where(VendorMember.user_id == actor.user_id, VendorMember.is_active.is_(True))
        .order_by(PurchaseOrder.id.desc())
    )
    return list(db.scalars(stmt))


__all__ = [
    "first_active_vendor",
    "generate_po_number",
    "handle_create_purchase_order",
    "list_company_purchase_orders",
    "list_vendor_purchase_orders",
    "update_item_status",
]
