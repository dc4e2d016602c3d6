from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medstore.api.deps import get_actor
from medstore.db import get_db
from medstore.identity import Actor
from medstore.schemas.cart_schema import AddItemIn, CartLineOut, CartOut, SetQuantityIn
from medstore.services.cart_service import CartService

router = APIRouter(prefix="/api/cart", tags=["cart"])


def _cart_out(snapshot) -> CartOut:
    return CartOut(
        items=[
            CartLineOut(
                item_id=l.item_id,
                product_id=l.product_id,
                sku=l.sku,
                name=l.name,
                quantity=l.quantity,
                unit_price_cents=l.unit_price_cents,
                line_total_cents=l.line_total_cents,
                requires_prescription=l.requires_prescription,
                active=l.active,
                stock=l.stock,
            )
            for l in snapshot.lines
        ],
        total_cents=snapshot.total_cents,
        requires_prescription=snapshot.requires_prescription,
    )


@router.get("", summary="Get cart", response_model=CartOut)
def get_cart(actor: Optional[Actor] = Depends(get_actor), db: Session = Depends(get_db)):
    return _cart_out(CartService(db).snapshot(actor))


@router.post("/items", summary="Add item to cart")
def add_item(
    payload: AddItemIn,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
):
    item = CartService(db).add(actor, payload.product_id, payload.qty)
    return {"item_id": item.id, "product_id": item.product_id, "quantity": item.quantity}


@router.patch("/items/{item_id}", summary="Set item quantity")
def set_quantity(
    item_id: int,
    payload: SetQuantityIn,
    actor: Optional[Actor] = Depends(get_actor),
    db: Session = Depends(get_db),
):
    item = CartService(db).set_quantity(actor, item_id, payload.qty)
    return {"item_id": item.id, "product_id": item.product_id, "quantity": item.quantity}


@router.delete("/items/{item_id}", summary="Remove item")
def remove_item(
    item_id: int, actor: Optional[Actor] = Depends(get_actor), db: Session = Depends(get_db)
):
    CartService(db).remove(actor, item_id)
    return {"ok": True}


@router.delete("", summary="Clear cart")
def clear_cart(actor: Optional[Actor] = Depends(get_actor), db: Session = Depends(get_db)):
    removed = CartService(db).clear(actor)
    return {"ok": True, "removed": removed}
