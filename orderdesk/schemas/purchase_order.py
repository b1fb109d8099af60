"""Purchase order schemas."""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from orderdesk.models.purchase_order import PurchaseOrderItemStatus, PurchaseOrderStatus


class PurchaseOrderItemRead(BaseModel):
    id: int
    order_item_id: int
    size: str
    quantity: int
    unit_price: Decimal
    status: PurchaseOrderItemStatus

    model_config = ConfigDict(from_attributes=True)


class PurchaseOrderRead(BaseModel):
    id: int
    company_id: int
    vendor_id: int
    order_id: int
    po_number: str
    status: PurchaseOrderStatus
    total_amount: Decimal
    items: list[PurchaseOrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class ItemStatusUpdate(BaseModel):
    status: PurchaseOrderItemStatus
