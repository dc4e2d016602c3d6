import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from medstore.adapters.mock_payment import MockPaymentGateway, PaymentGatewayError
from medstore.config import settings
from medstore.errors import InvalidInput, NotFound, StateConflict, UpstreamFailure
from medstore.identity import Actor, require_actor
from medstore.models.order import (
    CANCELLED,
    GATEWAY_METHODS,
    PAYMENT_PAID,
    PAYMENT_PENDING,
    PENDING,
    Order,
)
from medstore.repositories.cart_repo import CartRepository
from medstore.repositories.order_repo import OrderRepository
from medstore.utils.transactions import atomic

log = logging.getLogger(__name__)

SETTLED = "settled"
ALREADY_PAID = "already_paid"


@dataclass
class PaymentResult:
    order: Order
    outcome: str


class PaymentService:
    """
    Reconciles gateway payments against orders.

    Cash on delivery never comes through here: those orders stay
    payment_status=pending until the cash is collected. Gateway orders move
    pending -> paid exactly once, on a verified success callback.
    """

    def __init__(self, db: Session, gateway: Optional[MockPaymentGateway] = None):
        self.db = db
        self.gateway = gateway or MockPaymentGateway(delay_ms=settings.PAYMENT_MOCK_DELAY_MS)
        self.order_repo = OrderRepository(db)
        self.cart_repo = CartRepository(db)

    def _owned_gateway_order(self, actor: Actor, order_id: int) -> Order:
        order = self.order_repo.get(order_id)
        if not order or order.buyer_id != actor.user_id:
            raise NotFound("Order not found")
        if order.settles_immediately:
            raise InvalidInput("Cash on delivery orders are paid on delivery")
        return order

    def initiate(self, actor: Optional[Actor], order_id: int) -> Dict:
        """
        Create (or reuse) the gateway order the client-side checkout pays
        against. Returns what the client needs to open the payment popup.
        """
        actor = require_actor(actor)
        order = self._owned_gateway_order(actor, order_id)
        if order.payment_status == PAYMENT_PAID:
            raise StateConflict("Order is already paid")
        if order.status == CANCELLED:
            raise StateConflict("Order has been cancelled")

        if not order.gateway_order_id:
            try:
                gw = self.gateway.create_order(
                    order.total_cents, order.currency, receipt=order.order_number
                )
            except PaymentGatewayError as e:
                log.error("gateway order creation failed for %s: %s", order.order_number, e)
                raise UpstreamFailure("Payment gateway unavailable, please retry")
            with atomic(self.db):
                changed = self.order_repo.update_if(
                    order.id,
                    {"payment_status": PAYMENT_PENDING, "gateway_order_id": None},
                    {"gateway_order_id": gw["id"]},
                )
            self.db.refresh(order)
            if not changed:
                log.info("gateway order for %s was set concurrently", order.order_number)
            log.info("payment initiated order=%s gateway_order=%s", order.order_number, order.gateway_order_id)

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "gateway_order_id": order.gateway_order_id,
            "amount_cents": order.total_cents,
            "currency": order.currency,
            "key_id": self.gateway.key_id,
        }

    def confirm(
        self,
        actor: Optional[Actor],
        order_id: int,
        payment_id: str,
        gateway_order_id: str,
        signature: Optional[str] = None,
    ) -> PaymentResult:
        """
        Success callback relayed by the client after the gateway popup closes.

        Replays for an already paid order are a no-op. Settlement and cart
        clear happen in one transaction, guarded on payment_status=pending, the
        gateway order stored by initiate() and the order not being cancelled.
        """
        actor = require_actor(actor)
        if not payment_id or not gateway_order_id:
            raise InvalidInput("payment_id and gateway_order_id are required")
        order = self.order_repo.get(order_id)
        if not order or order.buyer_id != actor.user_id:
            log.warning("payment callback for unknown order %s (buyer %s)", order_id, actor.user_id)
            raise NotFound("Order not found")
        if order.settles_immediately:
            raise InvalidInput("Cash on delivery orders are paid on delivery")
        if order.payment_status == PAYMENT_PAID:
            log.info("payment callback replay for paid order %s ignored", order.order_number)
            return PaymentResult(order=order, outcome=ALREADY_PAID)
        if order.status == CANCELLED:
            log.warning("payment callback for cancelled order %s", order.order_number)
            raise StateConflict("Order has been cancelled")
        # only a gateway order issued by initiate() for this order can settle it
        if not order.gateway_order_id or order.gateway_order_id != gateway_order_id:
            log.warning(
                "payment callback for order %s with foreign gateway order %s",
                order.order_number,
                gateway_order_id,
            )
            raise StateConflict("Payment does not belong to this order")
        if settings.PAYMENT_VERIFY_SIGNATURE and not self.gateway.verify_signature(
            gateway_order_id, payment_id, signature
        ):
            log.warning("payment signature mismatch for order %s", order.order_number)
            raise InvalidInput("Payment could not be verified")

        try:
            with atomic(self.db):
                settled = self.order_repo.update_if(
                    order.id,
                    {"payment_status": PAYMENT_PENDING, "gateway_order_id": gateway_order_id},
                    {
                        "payment_status": PAYMENT_PAID,
                        "gateway_payment_id": payment_id,
                        "paid_at": datetime.now(timezone.utc),
                    },
                    excluded={"status": CANCELLED},
                )
                if settled:
                    self.cart_repo.clear(actor.user_id)
        except IntegrityError:
            log.warning("payment %s already settled another order", payment_id)
            raise StateConflict("Payment has already been used")
        self.db.refresh(order)

        if not settled:
            if order.payment_status == PAYMENT_PAID:
                log.info("order %s was settled by a concurrent callback", order.order_number)
                return PaymentResult(order=order, outcome=ALREADY_PAID)
            log.warning(
                "payment callback for order %s lost to a status change (now %s)",
                order.order_number,
                order.status,
            )
            raise StateConflict("Order has been cancelled")
        log.info("order %s paid payment=%s", order.order_number, payment_id)
        return PaymentResult(order=order, outcome=SETTLED)

    def cancel(self, actor: Optional[Actor], order_id: int) -> Order:
        """
        Buyer dismissed the payment popup. Nothing is rolled back; the order
        stays pending/pending and can be paid later from the order list.
        """
        actor = require_actor(actor)
        order = self._owned_gateway_order(actor, order_id)
        log.info(
            "payment flow dismissed for order %s (status=%s payment=%s)",
            order.order_number,
            order.status,
            order.payment_status,
        )
        return order

    def expire_stale(self, now: Optional[datetime] = None) -> List[int]:
        """
        Cancel gateway orders that never got paid within
        PENDING_PAYMENT_TTL_SECONDS. Cash on delivery orders are left alone.
        Returns the ids of cancelled orders.
        """
        ttl = settings.PENDING_PAYMENT_TTL_SECONDS
        if ttl <= 0:
            return []
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=ttl)
        expired = []
        with atomic(self.db):
            for order in self.order_repo.stale_gateway_orders(GATEWAY_METHODS, cutoff):
                if self.order_repo.update_if(
                    order.id,
                    {"status": PENDING, "payment_status": PAYMENT_PENDING},
                    {"status": CANCELLED},
                ):
                    expired.append(order.id)
        if expired:
            log.info("cancelled %d stale unpaid orders: %s", len(expired), expired)
        return expired
