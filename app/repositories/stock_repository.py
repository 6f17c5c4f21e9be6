# File: app/repositories/stock_repository.py

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models.stock import Stock, StockMovement
from app.repositories.base_repository import BaseRepository


class StockRepository(BaseRepository[Stock]):
    """Repository for branch stock levels and their movement ledger."""

    model = Stock

    def __init__(self, session: Session):
        super().__init__(session, Stock)

    def get_for_branch_product(self, branch_id: int, product_id: int) -> Optional[Stock]:
        stmt = (
            select(Stock)
            .where(Stock.branch_id == branch_id, Stock.product_id == product_id)
            .with_for_update()
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_movements(self, purchase_order_id: int) -> List[StockMovement]:
        stmt = (
            select(StockMovement)
            .where(StockMovement.purchase_order_id == purchase_order_id)
            .order_by(StockMovement.id)
        )
        return list(self.session.execute(stmt).scalars().all())
