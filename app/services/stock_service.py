# File: app/services/stock_service.py
"""
Stock bookkeeping triggered by purchase approvals.

Runs inside the caller's transaction and never commits on its own.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.db.models.enums import StockMovementType
from app.db.models.purchase import PurchaseOrder, PurchaseOrderItem
from app.db.models.stock import Stock, StockMovement
from app.repositories.product_repository import ProductRepository
from app.repositories.stock_repository import StockRepository
from app.services.base_service import BaseService

logger = logging.getLogger(__name__)


class StockService(BaseService[Stock]):
    """Receives approved purchase lines into branch stock."""

    def __init__(
        self,
        session: Session,
        repository: Optional[StockRepository] = None,
        product_repository: Optional[ProductRepository] = None,
    ):
        super().__init__(session, repository=repository or StockRepository(session))
        self.product_repository = product_repository or ProductRepository(session)

    def receive_purchase_item(
        self, order: PurchaseOrder, item: PurchaseOrderItem, user_id: int
    ) -> Optional[StockMovement]:
        """
        Book an approved purchase line into the order branch's stock.

        Refreshes the product's buying and unit prices from the line, adds
        the registered quantity to stock and writes a Purchase movement.

        Returns:
            The movement written, or None when nothing was received
        """
        product = item.product or self.product_repository.get_by_id(item.product_id)
        if product is not None:
            product.buying_price = item.buying_price
            product.unit_price = item.unit_price

        quantity = item.quantity_registered or 0
        if quantity <= 0:
            logger.info(
                f"Purchase order {order.id} item {item.id} approved with nothing received; stock unchanged"
            )
            return None

        stock = self.repository.get_for_branch_product(order.branch_id, item.product_id)
        if stock is None:
            stock = self.repository.add(
                Stock(branch_id=order.branch_id, product_id=item.product_id, quantity=0)
            )
            self.session.flush()

        previous_quantity = stock.quantity or 0
        stock.quantity = previous_quantity + quantity

        margin = item.profit_margin
        margin_text = f"{margin}%" if margin is not None else "n/a"
        movement = StockMovement(
            stock_id=stock.id,
            movement_type=StockMovementType.PURCHASE,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=stock.quantity,
            reason=(
                f"Purchase order #{order.id} approved. "
                f"Buying {item.buying_price}, selling {item.unit_price}, margin {margin_text}"
            ),
            performed_by_user_id=user_id,
            purchase_order_id=order.id,
        )
        self.session.add(movement)

        logger.info(
            f"Stock for product {item.product_id} at branch {order.branch_id}: "
            f"{previous_quantity} -> {stock.quantity} (purchase order {order.id})"
        )
        return movement
