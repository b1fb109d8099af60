"""Report schemas."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from orderdesk.models.order import OrderStatus
from orderdesk.schemas.purchase_order import PurchaseOrderRead


class OrderReportLineRead(BaseModel):
    order_id: int
    order_number: str
    user_id: int
    username: str
    department: str | None
    status: OrderStatus
    total_amount: Decimal
    order_date: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderReportSummaryRead(BaseModel):
    total_orders: int
    total_amount: Decimal
    average_order_value: Decimal
    status_breakdown: dict[str, int]
    department_breakdown: dict[str, int]

    model_config = ConfigDict(from_attributes=True)


class OrderReportRead(BaseModel):
    orders: list[OrderReportLineRead]
    summary: OrderReportSummaryRead

    model_config = ConfigDict(from_attributes=True)


class VendorPerformanceRead(BaseModel):
    vendor_id: int
    vendor_name: str
    total_purchase_orders: int
    completed_purchase_orders: int
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class VendorReportRead(BaseModel):
    purchase_orders: list[PurchaseOrderRead]
    vendor_performance: list[VendorPerformanceRead]

    model_config = ConfigDict(from_attributes=True)
