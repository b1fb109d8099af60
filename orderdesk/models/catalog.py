"""Catalog ORM models (read-only for the ordering flow)."""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

SIZES = ("XS", "S", "M", "L", "XL", "XXL")


class ProductType(Base):
    __tablename__ = "product_types"
    __table_args__ = (CheckConstraint("base_price >= 0", name="ck_product_type_price_non_negative"),)

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    base_price: Mapped[Decimal] = mapped_column(Numeric(18, 2, asdecimal=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    variants = relationship("ProductVariant", back_populates="product_type")


class ProductVariant(Base):
    __tablename__ = "product_variants"

    product_type_id: Mapped[int] = mapped_column(
        ForeignKey("product_types.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    color: Mapped[str | None] = mapped_column(String(60), nullable=True)
    price_modifier: Mapped[Decimal] = mapped_column(
        Numeric(18, 2, asdecimal=True), nullable=False, default=Decimal("0.00")
    )
    available_sizes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    product_type = relationship("ProductType", back_populates="variants")

    @property
    def unit_price(self) -> Decimal:
        return Decimal(self.product_type.base_price) + Decimal(self.price_modifier or 0)


__all__ = ["ProductType", "ProductVariant", "SIZES"]
