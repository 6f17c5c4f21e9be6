# File: app/db/models/stock.py

from sqlalchemy import Column, ForeignKey, Integer, String, Text, Enum, UniqueConstraint
from sqlalchemy.orm import relationship, validates

from app.db.models.base import AbstractBase, TimestampMixin, ModelValidationError
from app.db.models.enums import StockMovementType


class Stock(AbstractBase, TimestampMixin):
    """On-hand quantity of one product at one branch."""

    __tablename__ = "stocks"
    __table_args__ = (
        UniqueConstraint("branch_id", "product_id", name="uq_stock_branch_product"),
    )

    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)

    branch = relationship("Branch", back_populates="stocks")
    product = relationship("Product")
    movements = relationship(
        "StockMovement", back_populates="stock", order_by="StockMovement.id"
    )

    @validates("quantity")
    def validate_quantity(self, key: str, quantity: int) -> int:
        if quantity is not None and quantity < 0:
            raise ModelValidationError(self, key, "Stock quantity cannot be negative")
        return quantity

    def __repr__(self):
        return f"Stock(branch_id={self.branch_id}, product_id={self.product_id}, quantity={self.quantity})"


class StockMovement(AbstractBase, TimestampMixin):
    """Ledger entry explaining a change of a Stock quantity."""

    __tablename__ = "stock_movements"

    stock_id = Column(Integer, ForeignKey("stocks.id"), nullable=False, index=True)
    movement_type = Column(
        Enum(StockMovementType, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    quantity = Column(Integer, nullable=False)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    performed_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True, index=True)

    stock = relationship("Stock", back_populates="movements")

    def __repr__(self):
        return f"StockMovement(id={self.id}, type={self.movement_type}, quantity={self.quantity})"
