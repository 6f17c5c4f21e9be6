# File: app/repositories/branch_repository.py

from sqlalchemy.orm import Session

from app.db.models.branch import Branch
from app.repositories.base_repository import BaseRepository


class BranchRepository(BaseRepository[Branch]):
    """Read access to branches for existence checks."""

    model = Branch

    def __init__(self, session: Session):
        super().__init__(session, Branch)
