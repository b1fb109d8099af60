"""Cart: items a member collects before placing an order."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from orderdesk.models.cart import CartItem
from orderdesk.models.catalog import SIZES, ProductVariant
from orderdesk.security import Actor
from orderdesk.services import rbac
from orderdesk.utils.errors import NotFoundError, ValidationError
from orderdesk.utils.money import sum_money, to_money


@dataclass(frozen=True)
class PricedLine:
    """A cart item priced against the current catalog."""

    item: CartItem
    unit_price: Decimal
    line_total: Decimal


def _validate_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise ValidationError("quantity must be greater than zero.", details={"field": "quantity"})


def _load_variant(db: Session, company_id: int, variant_id: int) -> ProductVariant:
    variant = db.get(ProductVariant, variant_id)
    if (
        variant is None
        or not variant.is_active
        or variant.product_type is None
        or not variant.product_type.is_active
        or variant.product_type.company_id != company_id
    ):
        raise NotFoundError("Product variant not found.", code="PRODUCT_NOT_FOUND")
    return variant


def _validate_size(variant: ProductVariant, size: str) -> str:
    normalized = size.strip().upper()
    if normalized not in SIZES or normalized not in (variant.available_sizes or []):
        raise ValidationError(
            f"Size {size!r} is not available for this product.",
            code="INVALID_SIZE",
            details={"available_sizes": list(variant.available_sizes or [])},
        )
    return normalized


def list_cart(db: Session, actor: Actor | None, company_id: int) -> list[CartItem]:
    actor = rbac.require_actor(actor)
    stmt = (
        select(CartItem)
        .where(CartItem.user_id == actor.user_id, CartItem.company_id == company_id)
        .order_by(CartItem.id)
    )
    return list(db.scalars(stmt))


def add_to_cart(
    db: Session,
    actor: Actor | None,
    company_id: int,
    product_variant_id: int,
    size: str,
    quantity: int = 1,
) -> CartItem:
    """Add an item, merging it into an existing line for the same variant and size."""

    member = rbac.require_company_member(db, actor, company_id)
    _validate_quantity(quantity)
    variant = _load_variant(db, company_id, product_variant_id)
    normalized_size = _validate_size(variant, size)

    existing = db.scalars(
        select(CartItem).where(
            CartItem.user_id == member.user_id,
            CartItem.company_id == company_id,
            CartItem.product_variant_id == variant.id,
            CartItem.size == normalized_size,
        )
    ).first()
    if existing is not None:
        existing.quantity += quantity
        item = existing
    else:
        item = CartItem(
            user_id=member.user_id,
            company_id=company_id,
            product_type_id=variant.product_type_id,
            product_variant_id=variant.id,
            size=normalized_size,
            quantity=quantity,
        )
        db.add(item)
    db.commit()
    db.refresh(item)
    return item


def _owned_item(db: Session, actor: Actor | None, item_id: int) -> CartItem:
    actor = rbac.require_actor(actor)
    item = db.get(CartItem, item_id)
    if item is None or item.user_id != actor.user_id:
        raise NotFoundError("Cart item not found.", code="CART_ITEM_NOT_FOUND")
    return item


def update_cart_item(db: Session, actor: Actor | None, item_id: int, quantity: int) -> CartItem | None:
    """Set an item's quantity; zero or less removes it and returns ``None``."""

    item = _owned_item(db, actor, item_id)
    if quantity <= 0:
        db.delete(item)
        db.commit()
        return None
    item.quantity = quantity
    db.commit()
    db.refresh(item)
    return item


def remove_cart_item(db: Session, actor: Actor | None, item_id: int) -> None:
    item = _owned_item(db, actor, item_id)
    db.delete(item)
    db.commit()


def price_items(db: Session, company_id: int, items: list[CartItem]) -> list[PricedLine]:
    """Price cart items from the catalog, rejecting lines that became unorderable."""

    lines: list[PricedLine] = []
    for item in items:
        variant = _load_variant(db, company_id, item.product_variant_id)
        _validate_size(variant, item.size)
        _validate_quantity(item.quantity)
        unit_price = to_money(variant.unit_price)
        lines.append(PricedLine(item=item, unit_price=unit_price, line_total=to_money(unit_price * item.quantity)))
    return lines


def cart_total(lines: list[PricedLine]) -> Decimal:
    return sum_money(line.line_total for line in lines)


def clear_items(db: Session, items: list[CartItem]) -> None:
    """Delete ``items`` in the caller's transaction."""

    for item in items:
        db.delete(item)


__all__ = [
    "PricedLine",
    "add_to_cart",
    "cart_total",
    "clear_items",
    "list_cart",
    "price_items",
    "remove_cart_item",
    "update_cart_item",
]
