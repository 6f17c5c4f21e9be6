# File: app/repositories/product_repository.py

from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models.product import Product
from app.repositories.base_repository import BaseRepository


class ProductRepository(BaseRepository[Product]):
    """Read access to catalogue products plus price refresh on purchase."""

    model = Product

    def __init__(self, session: Session):
        super().__init__(session, Product)

    def get_active_by_ids(self, ids: List[int]) -> Dict[int, Product]:
        """Map of id to product for the given ids that exist and are active."""
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids), Product.is_active.is_(True))
        return {product.id: product for product in self.session.execute(stmt).scalars()}
