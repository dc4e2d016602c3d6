import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from medstore.errors import InvalidInput, NotFound
from medstore.identity import Actor, require_actor
from medstore.repositories.cart_repo import CartRepository
from medstore.repositories.product_repo import ProductRepository
from medstore.utils.transactions import atomic

log = logging.getLogger(__name__)


@dataclass
class CartLine:
    item_id: int
    product_id: int
    sku: str
    name: str
    quantity: int
    unit_price_cents: int
    requires_prescription: bool
    active: bool
    stock: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass
class CartSnapshot:
    buyer_id: str
    lines: List[CartLine] = field(default_factory=list)

    @property
    def total_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)

    @property
    def requires_prescription(self) -> bool:
        return any(line.requires_prescription for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartService:
    def __init__(self, db: Session):
        self.db = db
        self.cart_repo = CartRepository(db)
        self.product_repo = ProductRepository(db)

    def add(self, actor: Optional[Actor], product_id: int, qty: int = 1):
        actor = require_actor(actor)
        if qty < 1:
            raise InvalidInput("Quantity must be positive")
        if not self.product_repo.get(product_id):
            raise NotFound("Product not found")
        try:
            with atomic(self.db):
                item = self.cart_repo.add_or_increment(actor.user_id, product_id, qty)
        except IntegrityError:
            # a concurrent add inserted the (buyer, product) row first
            with atomic(self.db):
                item = self.cart_repo.add_or_increment(actor.user_id, product_id, qty)
        self.db.refresh(item)
        log.info("cart add buyer=%s product=%s qty=%d -> %d", actor.user_id, product_id, qty, item.quantity)
        return item

    def set_quantity(self, actor: Optional[Actor], item_id: int, qty: int):
        actor = require_actor(actor)
        if qty < 1:
            raise InvalidInput("Quantity must be at least 1; remove the item instead")
        item = self.cart_repo.get_for_buyer(actor.user_id, item_id)
        if not item:
            raise NotFound("Cart item not found")
        with atomic(self.db):
            item.quantity = qty
        return item

    def remove(self, actor: Optional[Actor], item_id: int):
        actor = require_actor(actor)
        item = self.cart_repo.get_for_buyer(actor.user_id, item_id)
        if not item:
            raise NotFound("Cart item not found")
        with atomic(self.db):
            self.cart_repo.delete(item)

    def clear(self, actor: Optional[Actor]) -> int:
        actor = require_actor(actor)
        with atomic(self.db):
            return self.cart_repo.clear(actor.user_id)

    def snapshot(self, actor: Optional[Actor]) -> CartSnapshot:
        """
        Current cart joined with live product data. Prices are whatever the
        catalogue says right now, not what they were when the item was added.
        """
        actor = require_actor(actor)
        items = self.cart_repo.list_for_buyer(actor.user_id)
        lines = [
            CartLine(
                item_id=it.id,
                product_id=it.product_id,
                sku=it.product.sku,
                name=it.product.name,
                quantity=it.quantity,
                unit_price_cents=it.product.price_cents,
                requires_prescription=bool(it.product.requires_prescription),
                active=bool(it.product.active),
                stock=it.product.stock,
            )
            for it in items
        ]
        return CartSnapshot(buyer_id=actor.user_id, lines=lines)
