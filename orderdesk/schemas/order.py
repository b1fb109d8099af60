"""Pydantic schemas for orders, approvals and bulk operations."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from orderdesk.models.order import OrderStatus, PaymentSource


class OrderCreate(BaseModel):
    company_id: int = Field(gt=0)
    payment_source: PaymentSource | None = PaymentSource.COMPANY_BUDGET
    notes: str | None = Field(default=None, max_length=2000)


class OrderItemRead(BaseModel):
    id: int
    product_type_id: int
    product_variant_id: int
    size: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    company_id: int
    user_id: int
    order_number: str
    total_amount: Decimal
    status: OrderStatus
    payment_source: PaymentSource | None
    budget_id: int | None
    employee_budget_id: int | None
    notes: str | None
    rejection_reason: str | None
    cancellation_reason: str | None = None
    approved_by_id: int | None
    approved_at: datetime | None
    order_date: datetime
    items: list[OrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    reason: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=2000)


class ApproveIn(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class RejectIn(BaseModel):
    reason: str = Field(max_length=2000)


class BulkApproveIn(BaseModel):
    order_ids: list[int] = Field(min_length=1, max_length=200)
    notes: str | None = None


class BulkStatusIn(BaseModel):
    order_ids: list[int] = Field(min_length=1, max_length=200)
    status: OrderStatus
    reason: str | None = None


class BulkItemResultRead(BaseModel):
    order_id: int
    success: bool
    error_code: str | None = None
    error: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BulkResultRead(BaseModel):
    results: list[BulkItemResultRead]
    succeeded: int
    failed: int


class MemberOrderStatsRead(BaseModel):
    order_count: int
    pending_count: int
    total_ordered: Decimal
    allocated: Decimal
    spent: Decimal
    remaining: Decimal

    model_config = ConfigDict(from_attributes=True)


class PendingApprovalRead(BaseModel):
    order_id: int
    order_number: str
    user_id: int
    username: str
    department: str | None
    total_amount: Decimal
    order_date: datetime
    employee_budget_id: int | None

    model_config = ConfigDict(from_attributes=True)
