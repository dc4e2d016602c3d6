from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    product_id: Optional[int] = None
    name: Optional[str] = None
    quantity: int
    price_cents: int


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    order_number: str
    buyer_id: str
    status: str
    payment_status: str
    payment_method: str
    total_cents: int
    currency: str
    delivery_address: str
    prescription_id: Optional[int] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    items: List[OrderItemOut] = []


class StatusUpdateIn(BaseModel):
    status: str


class PaymentInitOut(BaseModel):
    order_id: int
    order_number: str
    gateway_order_id: str
    amount_cents: int
    currency: str
    key_id: str


class PaymentConfirmIn(BaseModel):
    payment_id: str
    gateway_order_id: str
    signature: Optional[str] = None


class PaymentConfirmOut(BaseModel):
    outcome: str
    order: OrderOut
