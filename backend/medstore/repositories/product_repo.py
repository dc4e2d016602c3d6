from typing import Iterable, List, Optional

from medstore.models.product import Product
from sqlalchemy.orm import Session


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: int, active_only: bool = True) -> Optional[Product]:
        qry = self.db.query(Product).filter(Product.id == product_id)
        if active_only:
            qry = qry.filter(Product.active == True)
        return qry.first()

    def get_by_sku(self, sku: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.sku == sku).first()

    def lock_many(self, product_ids: Iterable[int]) -> List[Product]:
        """Re-read products FOR UPDATE (a no-op on SQLite) inside a checkout."""
        ids = sorted(set(product_ids))
        return (
            self.db.query(Product)
            .filter(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .all()
        )

    def create_or_update(
        self,
        sku: str,
        name: str,
        price_cents: int,
        stock: int = 0,
        requires_prescription: bool = False,
        description: str = None,
        image: str = None,
    ) -> Product:
        p = self.get_by_sku(sku)
        if p:
            p.name = name
            p.price_cents = price_cents
            p.stock = stock
            p.requires_prescription = requires_prescription
            p.description = description
            p.image = image
        else:
            p = Product(
                sku=sku,
                name=name,
                price_cents=price_cents,
                stock=stock,
                requires_prescription=requires_prescription,
                description=description,
                image=image,
            )
            self.db.add(p)
        self.db.flush()
        return p
