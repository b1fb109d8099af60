"""Cart endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from orderdesk.db import get_db
from orderdesk.models.cart import CartItem
from orderdesk.schemas.cart import CartItemCreate, CartItemRead, CartItemUpdate
from orderdesk.security import Actor, require_actor
from orderdesk.services import cart as cart_service

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=list[CartItemRead])
def list_cart(
    company_id: int = Query(gt=0),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> list[CartItem]:
    return cart_service.list_cart(db, actor, company_id)


@router.post("/items", response_model=CartItemRead, status_code=status.HTTP_201_CREATED)
def add_item(
    payload: CartItemCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> CartItem:
    return cart_service.add_to_cart(
        db,
        actor,
        payload.company_id,
        payload.product_variant_id,
        payload.size,
        payload.quantity,
    )


@router.patch("/items/{item_id}", response_model=CartItemRead | None)
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> CartItem | None:
    return cart_service.update_cart_item(db, actor, item_id, payload.quantity)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def remove_item(
    item_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_actor),
) -> Response:
    cart_service.remove_cart_item(db, actor, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
