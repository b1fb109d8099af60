"""Order ORM models."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_type


class OrderStatus(str, Enum):
    """Order lifecycle statuses."""

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONFIRMED = "confirmed"
    IN_PRODUCTION = "in_production"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentSource(str, Enum):
    COMPANY_BUDGET = "company_budget"
    PERSONAL = "personal"


class Order(Base):
    """An order placed by a company member; never deleted."""

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_order_total_non_negative"),
        Index("ix_orders_company_status", "company_id", "status"),
    )

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    order_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        enum_type(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.PENDING_APPROVAL,
    )
    payment_source: Mapped[PaymentSource | None] = mapped_column(
        enum_type(PaymentSource, "payment_source"), nullable=True
    )
    budget_id: Mapped[int | None] = mapped_column(ForeignKey("budgets.id"), nullable=True, index=True)
    employee_budget_id: Mapped[int | None] = mapped_column(
        ForeignKey("employee_budgets.id"), nullable=True, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id", lazy="selectin")


class OrderItem(Base):
    """A line of an order with its price frozen at order time."""

    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),)

    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    product_type_id: Mapped[int] = mapped_column(ForeignKey("product_types.id"), nullable=False)
    product_variant_id: Mapped[int] = mapped_column(ForeignKey("product_variants.id"), nullable=False)
    size: Mapped[str] = mapped_column(String(8), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)

    order = relationship("Order", back_populates="items")


__all__ = ["Order", "OrderItem", "OrderStatus", "PaymentSource"]
