"""Purchase order ORM models."""
from __future__ import annotations

from decimal import Decimal
from enum import Enum

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_type


class PurchaseOrderStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PurchaseOrderItemStatus(str, Enum):
    PENDING = "pending"
    ART_PROOF = "art_proof"
    APPROVED = "approved"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"


class PurchaseOrder(Base):
    """Vendor-facing document created once an order is approved."""

    __tablename__ = "purchase_orders"

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    vendor_id: Mapped[int] = mapped_column(ForeignKey("vendors.id"), nullable=False, index=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, unique=True)
    po_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    status: Mapped[PurchaseOrderStatus] = mapped_column(
        enum_type(PurchaseOrderStatus, "purchase_order_status"),
        nullable=False,
        default=PurchaseOrderStatus.DRAFT,
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.id",
        lazy="selectin",
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    purchase_order_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False, index=True
    )
    order_item_id: Mapped[int] = mapped_column(ForeignKey("order_items.id"), nullable=False)
    size: Mapped[str] = mapped_column(String(8), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    status: Mapped[PurchaseOrderItemStatus] = mapped_column(
        enum_type(PurchaseOrderItemStatus, "purchase_order_item_status"),
        nullable=False,
        default=PurchaseOrderItemStatus.PENDING,
    )

    purchase_order = relationship("PurchaseOrder", back_populates="items")


__all__ = [
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderItemStatus",
    "PurchaseOrderStatus",
]
