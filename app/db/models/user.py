# File: app/db/models/user.py

from sqlalchemy import Column, ForeignKey, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship

from app.db.models.base import AbstractBase, TimestampMixin
from app.db.models.enums import UserRole


class User(AbstractBase, TimestampMixin):
    """
    Staff account used to authenticate and authorize workflow actions.

    The role and branch assignment stored here are the only source the
    authorization gate trusts.
    """

    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    branch_id = Column(Integer, ForeignKey("branches.id"), nullable=True, index=True)
    last_login = Column(DateTime, nullable=True)

    branch = relationship("Branch", back_populates="users")

    def __repr__(self):
        return f"User(id={self.id}, email={self.email}, role={self.role})"
