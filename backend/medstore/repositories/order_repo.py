from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from medstore.models.order import (
    DELIVERED,
    PAYMENT_PENDING,
    PENDING,
    Order,
)


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: int) -> Optional[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id)
            .first()
        )

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def list_for_buyer(self, buyer_id: str) -> List[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.buyer_id == buyer_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def list_open(self, limit: int = 100) -> List[Order]:
        """Everything staff still has to act on (not delivered yet)."""
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.status != DELIVERED)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .all()
        )

    def update_if(
        self,
        order_id: int,
        expected: Dict,
        values: Dict,
        excluded: Optional[Dict] = None,
    ) -> bool:
        """
        Conditional single-row update: apply `values` only when every column in
        `expected` still holds the given value and no column in `excluded`
        holds the given one. Returns True if the row changed.
        """
        qry = self.db.query(Order).filter(Order.id == order_id)
        for column, value in expected.items():
            qry = qry.filter(getattr(Order, column) == value)
        for column, value in (excluded or {}).items():
            qry = qry.filter(getattr(Order, column) != value)
        updated = qry.update(values, synchronize_session=False)
        self.db.flush()
        return updated == 1

    def stale_gateway_orders(self, methods, created_before: datetime) -> List[Order]:
        return (
            self.db.query(Order)
            .filter(
                Order.payment_method.in_(methods),
                Order.status == PENDING,
                Order.payment_status == PAYMENT_PENDING,
                Order.created_at < created_before,
            )
            .order_by(Order.id)
            .all()
        )
