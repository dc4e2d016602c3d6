from typing import List

from pydantic import BaseModel, Field


class AddItemIn(BaseModel):
    product_id: int
    qty: int = Field(1, ge=1)


class SetQuantityIn(BaseModel):
    qty: int


class CartLineOut(BaseModel):
    item_id: int
    product_id: int
    sku: str
    name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    requires_prescription: bool
    active: bool
    stock: int


class CartOut(BaseModel):
    items: List[CartLineOut]
    total_cents: int
    requires_prescription: bool
