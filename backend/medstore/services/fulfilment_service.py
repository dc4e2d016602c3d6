import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from medstore.errors import InvalidInput, NotFound, StateConflict
from medstore.identity import Actor, require_staff
from medstore.models.order import (
    APPROVED,
    CANCELLED,
    DELIVERED,
    PENDING,
    PROCESSING,
    SHIPPED,
    STATUSES,
    Order,
)
from medstore.models.prescription import APPROVED as PRESCRIPTION_APPROVED
from medstore.repositories.order_repo import OrderRepository
from medstore.repositories.prescription_repo import PrescriptionRepository
from medstore.utils.transactions import atomic

log = logging.getLogger(__name__)

# the one forward step allowed from each non-terminal status
NEXT_STATUS = {
    PENDING: APPROVED,
    APPROVED: PROCESSING,
    PROCESSING: SHIPPED,
    SHIPPED: DELIVERED,
}


def allowed_transitions(status: str) -> List[str]:
    if status not in NEXT_STATUS:
        return []
    return [NEXT_STATUS[status], CANCELLED]


class FulfilmentService:
    def __init__(self, db: Session):
        self.db = db
        self.order_repo = OrderRepository(db)
        self.prescription_repo = PrescriptionRepository(db)

    def list_open_orders(self, actor: Optional[Actor], limit: int = 100) -> List[Order]:
        require_staff(actor)
        return self.order_repo.list_open(limit=limit)

    def transition(self, actor: Optional[Actor], order_id: int, new_status: str) -> Order:
        """
        Move an order to `new_status`.

        Only the next status in pending -> approved -> processing -> shipped ->
        delivered, or cancelled, is accepted. Approving an order that carries a
        prescription needs that prescription approved first.
        """
        actor = require_staff(actor)
        if new_status not in STATUSES:
            raise InvalidInput(f"Unknown order status: {new_status}")
        order = self.order_repo.get(order_id)
        if not order:
            raise NotFound("Order not found")

        current = order.status
        if new_status not in allowed_transitions(current):
            if order.is_terminal:
                raise StateConflict(f"Order is already {current}")
            raise StateConflict(f"Cannot move order from {current} to {new_status}")

        if new_status == APPROVED and order.prescription_id is not None:
            prescription = self.prescription_repo.get(order.prescription_id)
            if prescription is None or prescription.status != PRESCRIPTION_APPROVED:
                raise StateConflict("Prescription must be approved before the order")

        with atomic(self.db):
            changed = self.order_repo.update_if(
                order.id, {"status": current}, {"status": new_status}
            )
        self.db.refresh(order)
        if not changed:
            raise StateConflict(f"Order status changed concurrently (now {order.status})")

        log.info(
            "order %s %s -> %s by %s", order.order_number, current, new_status, actor.user_id
        )
        return order
