from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from medstore.db import Base

# fulfilment status
PENDING = "pending"
APPROVED = "approved"
PROCESSING = "processing"
SHIPPED = "shipped"
DELIVERED = "delivered"
CANCELLED = "cancelled"

STATUSES = (PENDING, APPROVED, PROCESSING, SHIPPED, DELIVERED, CANCELLED)
TERMINAL_STATUSES = frozenset([DELIVERED, CANCELLED])

# payment status
PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"

# payment methods; cod settles on delivery, the rest through the gateway
COD = "cod"
GATEWAY_METHODS = ("card", "upi", "wallet", "netbanking")
PAYMENT_METHODS = (COD,) + GATEWAY_METHODS


def _now():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)
    buyer_id = Column(String(64), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=PENDING, index=True)
    payment_status = Column(String(16), nullable=False, default=PAYMENT_PENDING)
    payment_method = Column(String(16), nullable=False)
    total_cents = Column(Integer, nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="INR")
    delivery_address = Column(Text, nullable=False)
    prescription_id = Column(
        Integer,
        ForeignKey("prescriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    gateway_order_id = Column(String(64), nullable=True, index=True)
    gateway_payment_id = Column(String(64), nullable=True, unique=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    prescription = relationship("Prescription")

    @property
    def settles_immediately(self) -> bool:
        return self.payment_method == COD

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True
    )
    name = Column(String(256), nullable=True)
    quantity = Column(Integer, nullable=False)
    price_cents = Column(Integer, nullable=False)  # unit price at order time

    order = relationship("Order", back_populates="items")

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity
