"""Order endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.order import Order, OrderStatus
from orderdesk.schemas.order import (
    BulkItemResultRead,
    BulkResultRead,
    BulkStatusIn,
    MemberOrderStatsRead,
    OrderCreate,
    OrderRead,
    OrderStatusUpdate,
)
from orderdesk.security import Actor, require_actor
from orderdesk.services import bulk, orders as order_service, rbac, reports
from orderdesk.services.bulk import BulkItemResult
from orderdesk.services.reports import MemberOrderStats
from orderdesk.utils.errors import NotFoundError, Unauthorized

router = APIRouter(prefix="/orders", tags=["orders"])


def bulk_response(results: list[BulkItemResult]) -> BulkResultRead:
    succeeded = sum(1 for result in results if result.success)
    return BulkResultRead(
        results=[BulkItemResultRead.model_validate(result) for result in results],
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Order:
    """Place an order from the caller's cart."""

    return order_service.create_order_from_cart(
        db,
        actor,
        payload.company_id,
        payment_source=payload.payment_source,
        notes=payload.notes,
        idempotency_key=idempotency_key,
    )


@router.get("/mine", response_model=list[OrderRead])
def my_orders(
    company_id: int | None = Query(default=None, gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[Order]:
    return reports.list_my_orders(db, actor, company_id=company_id)


@router.get("/stats", response_model=MemberOrderStatsRead)
def my_order_stats(
    company_id: int = Query(gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> MemberOrderStats:
    return reports.member_order_stats(db, actor, company_id)


@router.post("/bulk-status", response_model=BulkResultRead)
def bulk_update_status(
    payload: BulkStatusIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> BulkResultRead:
    results = bulk.bulk_update_status(db, actor, payload.order_ids, payload.status, reason=payload.reason)
    return bulk_response(results)


@router.get("", response_model=list[OrderRead])
def list_orders(
    company_id: int = Query(gt=0),
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[Order]:
    return reports.list_company_orders(db, actor, company_id, status=status_filter)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Order:
    order = order_service.get_order_or_404(db, order_id)
    if order.user_id != actor.user_id:
        if rbac.find_vendor_for_company(db, actor.user_id, order.company_id) is None:
            try:
                rbac.require_company_manager(db, actor, order.company_id)
            except Unauthorized as exc:
                raise NotFoundError("Order not found.", code="ORDER_NOT_FOUND") from exc
    return order


@router.post("/{order_id}/status", response_model=OrderRead)
def update_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Order:
    return order_service.update_order_status(
        db, actor, order_id, payload.status, reason=payload.reason, notes=payload.notes
    )
