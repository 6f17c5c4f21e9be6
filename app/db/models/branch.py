# File: app/db/models/branch.py

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from app.db.models.base import AbstractBase, TimestampMixin


class Branch(AbstractBase, TimestampMixin):
    """A physical shop location. Scopes Sales visibility and stock."""

    __tablename__ = "branches"

    name = Column(String(150), nullable=False, unique=True)
    location = Column(String(255), nullable=True)

    users = relationship("User", back_populates="branch")
    stocks = relationship("Stock", back_populates="branch")

    def __repr__(self):
        return f"Branch(id={self.id}, name={self.name})"
