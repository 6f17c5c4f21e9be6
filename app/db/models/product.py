# File: app/db/models/product.py

from sqlalchemy import Column, String, Numeric

from app.db.models.base import AbstractBase, TimestampMixin


class Product(AbstractBase, TimestampMixin):
    """
    Catalogue product.

    Buying and unit prices are refreshed from the purchase order item each
    time a purchase of the product is finally approved.
    """

    __tablename__ = "products"

    name = Column(String(255), nullable=False)
    item_code = Column(String(64), nullable=False, unique=True, index=True)
    buying_price = Column(Numeric(12, 2), nullable=True)
    unit_price = Column(Numeric(12, 2), nullable=True)

    def __repr__(self):
        return f"Product(id={self.id}, item_code={self.item_code}, name={self.name})"
