"""Purchase order endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.purchase_order import PurchaseOrder
from orderdesk.schemas.purchase_order import ItemStatusUpdate, PurchaseOrderRead
from orderdesk.security import Actor, require_actor
from orderdesk.services import purchase_orders as po_service

router = APIRouter(prefix="/purchase-orders", tags=["purchase-orders"])


@router.get("", response_model=list[PurchaseOrderRead])
def company_purchase_orders(
    company_id: int = Query(gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[PurchaseOrder]:
    return po_service.list_company_purchase_orders(db, actor, company_id)


@router.get("/vendor", response_model=list[PurchaseOrderRead])
def vendor_purchase_orders(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[PurchaseOrder]:
    return po_service.list_vendor_purchase_orders(db, actor)


@router.post("/{purchase_order_id}/items/{item_id}/status", response_model=PurchaseOrderRead)
def update_item_status(
    purchase_order_id: int,
    item_id: int,
    payload: ItemStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> PurchaseOrder:
    return po_service.update_item_status(db, actor, purchase_order_id, item_id, payload.status)
