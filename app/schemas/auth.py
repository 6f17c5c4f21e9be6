# File: app/schemas/auth.py
"""
Identity of the caller as seen by the purchase workflow.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.db.models.enums import UserRole


class Principal(BaseModel):
    """
    The calling staff member: user id, role and assigned branch.

    Built from the stored user row, never from token claims.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    role: UserRole
    branch_id: Optional[int] = None

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.id, role=user.role, branch_id=user.branch_id)
