import logging
import re
import time
from dataclasses import dataclass
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from medstore.adapters.storage import LocalObjectStorage, StorageError
from medstore.config import settings
from medstore.errors import (
    InvalidInput,
    NotFound,
    PrescriptionRequired,
    StateConflict,
    UpstreamFailure,
)
from medstore.identity import Actor, require_actor
from medstore.models.order import (
    PAYMENT_METHODS,
    PAYMENT_PENDING,
    PENDING,
    Order,
    OrderItem,
)
from medstore.repositories.cart_repo import CartRepository
from medstore.repositories.idempotency_repo import IdempotencyRepository
from medstore.repositories.order_repo import OrderRepository
from medstore.repositories.prescription_repo import PrescriptionRepository
from medstore.repositories.product_repo import ProductRepository
from medstore.services.cart_service import CartService, CartSnapshot
from medstore.utils.transactions import atomic

log = logging.getLogger(__name__)

# accepted prescription scans -> stored file extension
DOCUMENT_TYPES = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
}


@dataclass
class PrescriptionUpload:
    filename: str
    content_type: str
    data: bytes


class OrderService:
    def __init__(self, db: Session, storage: Optional[LocalObjectStorage] = None):
        self.db = db
        self.storage = storage or LocalObjectStorage()
        self.cart = CartService(db)
        self.cart_repo = CartRepository(db)
        self.order_repo = OrderRepository(db)
        self.product_repo = ProductRepository(db)
        self.prescription_repo = PrescriptionRepository(db)
        self.idem_repo = IdempotencyRepository(db)

    def _gen_order_number(self) -> str:
        return f"ORD-{uuid4().hex[:10].upper()}"

    def checkout(
        self,
        actor: Optional[Actor],
        delivery_address: str,
        payment_method: str,
        prescription_document: Optional[PrescriptionUpload] = None,
        idempotency_key: Optional[str] = None,
    ) -> Order:
        """
        Turn the buyer's current cart into an order.

        The prescription row, the order, its items, the idempotency record and
        (for cash on delivery) the cart clear are written in one transaction.
        The document upload happens before it and is deleted again if the
        transaction does not commit.
        """
        actor = require_actor(actor)
        scoped_key = self._scoped_key(actor, idempotency_key)
        if scoped_key:
            previous = self._replay(scoped_key)
            if previous is not None:
                log.info("checkout replay key=%s order=%s", idempotency_key, previous.id)
                return previous

        address = (delivery_address or "").strip()
        if not address:
            raise InvalidInput("Please enter delivery address")
        if payment_method not in PAYMENT_METHODS:
            raise InvalidInput(f"Unsupported payment method: {payment_method}")

        snapshot = self.cart.snapshot(actor)
        if snapshot.is_empty:
            raise InvalidInput("Your cart is empty")
        unavailable = [line.name for line in snapshot.lines if not line.active]
        if unavailable:
            raise InvalidInput("No longer available: " + ", ".join(unavailable))
        if snapshot.requires_prescription and prescription_document is None:
            raise PrescriptionRequired()

        file_key = None
        if prescription_document is not None:
            self._validate_document(prescription_document)
            file_key = self._store_document(actor, prescription_document)

        try:
            with atomic(self.db):
                order = self._create_order(
                    actor,
                    snapshot,
                    address,
                    payment_method,
                    prescription_document,
                    file_key,
                    scoped_key,
                )
        except IntegrityError:
            self._discard_document(file_key)
            if scoped_key:
                previous = self._replay(scoped_key)
                if previous is not None:
                    return previous
            log.exception("checkout failed for buyer=%s", actor.user_id)
            raise StateConflict("Checkout could not be completed, please try again")
        except Exception:
            self._discard_document(file_key)
            raise

        log.info(
            "order %s placed buyer=%s total=%d method=%s prescription=%s",
            order.order_number,
            actor.user_id,
            order.total_cents,
            payment_method,
            order.prescription_id,
        )
        return order

    def _create_order(
        self,
        actor: Actor,
        snapshot: CartSnapshot,
        address: str,
        payment_method: str,
        document: Optional[PrescriptionUpload],
        file_key: Optional[str],
        scoped_key: Optional[str],
    ) -> Order:
        prescription_id = None
        if file_key:
            prescription = self.prescription_repo.create(
                actor.user_id,
                file_key,
                content_type=document.content_type,
                original_filename=document.filename,
            )
            prescription_id = prescription.id

        if settings.DECREMENT_STOCK_ON_CHECKOUT:
            self._decrement_stock(snapshot)

        order = Order(
            order_number=self._gen_order_number(),
            buyer_id=actor.user_id,
            status=PENDING,
            payment_status=PAYMENT_PENDING,
            payment_method=payment_method,
            total_cents=snapshot.total_cents,
            currency=settings.CURRENCY,
            delivery_address=address,
            prescription_id=prescription_id,
        )
        order.items = [
            OrderItem(
                product_id=line.product_id,
                name=line.name,
                quantity=line.quantity,
                price_cents=line.unit_price_cents,
            )
            for line in snapshot.lines
        ]
        self.order_repo.add(order)

        if scoped_key:
            self.idem_repo.record(
                scoped_key,
                "checkout",
                actor.user_id,
                {"order_id": order.id, "order_number": order.order_number},
            )
        if order.settles_immediately:
            self.cart_repo.clear(actor.user_id)
        return order

    def _decrement_stock(self, snapshot: CartSnapshot):
        products = {p.id: p for p in self.product_repo.lock_many(l.product_id for l in snapshot.lines)}
        for line in snapshot.lines:
            product = products.get(line.product_id)
            if product is None or product.stock < line.quantity:
                raise StateConflict(f"Not enough stock for {line.name}")
            product.stock = product.stock - line.quantity
        self.db.flush()

    def _validate_document(self, document: PrescriptionUpload):
        if document.content_type not in DOCUMENT_TYPES:
            raise InvalidInput("Please upload PDF, JPG, or PNG files only")
        if not document.data:
            raise InvalidInput("Uploaded prescription is empty")
        if len(document.data) > settings.MAX_PRESCRIPTION_BYTES:
            limit_mb = settings.MAX_PRESCRIPTION_BYTES // (1024 * 1024)
            raise InvalidInput(f"File size must be less than {limit_mb}MB")

    def _store_document(self, actor: Actor, document: PrescriptionUpload) -> str:
        folder = re.sub(r"[^A-Za-z0-9_-]", "_", actor.user_id)
        ext = DOCUMENT_TYPES[document.content_type]
        key = f"{folder}/{int(time.time() * 1000)}-{uuid4().hex[:8]}.{ext}"
        try:
            return self.storage.put(key, document.data, document.content_type)
        except StorageError as e:
            log.error("prescription upload failed: %s", e)
            raise UpstreamFailure("Could not upload prescription, please try again")

    def _discard_document(self, file_key: Optional[str]):
        if not file_key:
            return
        try:
            self.storage.delete(file_key)
        except StorageError:
            log.warning("could not delete orphaned prescription %s", file_key, exc_info=True)

    def _scoped_key(self, actor: Actor, idempotency_key: Optional[str]) -> Optional[str]:
        if not idempotency_key:
            return None
        return f"checkout:{actor.user_id}:{idempotency_key}"

    def _replay(self, scoped_key: str) -> Optional[Order]:
        rec = self.idem_repo.get(scoped_key)
        if not rec or not rec.response_body:
            return None
        return self.order_repo.get(rec.response_body["order_id"])

    def get_order(self, actor: Optional[Actor], order_id: int) -> Order:
        actor = require_actor(actor)
        order = self.order_repo.get(order_id)
        if not order or (order.buyer_id != actor.user_id and not actor.is_staff):
            raise NotFound("Order not found")
        return order

    def list_orders(self, actor: Optional[Actor]) -> List[Order]:
        actor = require_actor(actor)
        return self.order_repo.list_for_buyer(actor.user_id)
