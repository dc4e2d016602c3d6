from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from medstore.models.cart_item import CartItem


class CartRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_for_buyer(self, buyer_id: str) -> List[CartItem]:
        return (
            self.db.query(CartItem)
            .options(joinedload(CartItem.product))
            .filter(CartItem.buyer_id == buyer_id)
            .order_by(CartItem.id)
            .all()
        )

    def get_for_buyer(self, buyer_id: str, item_id: int) -> Optional[CartItem]:
        return (
            self.db.query(CartItem)
            .filter(CartItem.id == item_id, CartItem.buyer_id == buyer_id)
            .first()
        )

    def find(self, buyer_id: str, product_id: int) -> Optional[CartItem]:
        return (
            self.db.query(CartItem)
            .filter(CartItem.buyer_id == buyer_id, CartItem.product_id == product_id)
            .first()
        )

    def add_or_increment(self, buyer_id: str, product_id: int, qty: int) -> CartItem:
        item = self.find(buyer_id, product_id)
        if item:
            item.quantity = CartItem.quantity + qty
        else:
            item = CartItem(buyer_id=buyer_id, product_id=product_id, quantity=qty)
            self.db.add(item)
        self.db.flush()
        return item

    def delete(self, item: CartItem):
        self.db.delete(item)
        self.db.flush()

    def clear(self, buyer_id: str) -> int:
        n = (
            self.db.query(CartItem)
            .filter(CartItem.buyer_id == buyer_id)
            .delete(synchronize_session="fetch")
        )
        self.db.flush()
        return n
