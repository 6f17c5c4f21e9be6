# File: app/repositories/base_repository.py

from typing import Generic, TypeVar, Dict, Any, Optional, Type
from sqlalchemy.orm import Session
from sqlalchemy import select

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Data access shared by the ShopDesk repositories.

    Writes are added and flushed but never committed; the owning service
    decides when its unit of work ends.

    Attributes:
        session (Session): Session of the current unit of work
        model (Type[T]): Mapped class the repository reads and writes
    """

    model: Optional[Type[T]] = None

    def __init__(self, session: Session, model: Optional[Type[T]] = None):
        self.session = session
        if model is not None:
            self.model = model

    def _get_model(self) -> Type[T]:
        if self.model is None:
            raise TypeError(f"{type(self).__name__} has no model configured")
        return self.model

    def get_by_id(self, id: int) -> Optional[T]:
        """Fetch one row by primary key, active or not."""
        model_class = self._get_model()
        return self.session.execute(
            select(model_class).where(model_class.id == id)
        ).scalar_one_or_none()

    def get_active_by_id(self, id: int) -> Optional[T]:
        """Fetch one row by primary key, skipping deactivated rows."""
        model_class = self._get_model()
        return self.session.execute(
            select(model_class).where(model_class.id == id, model_class.is_active.is_(True))
        ).scalar_one_or_none()

    def create(self, data: Dict[str, Any]) -> T:
        """
        Build an entity from ``data`` and flush it to obtain its id.

        Keys that are not columns of the model are ignored.
        """
        model_class = self._get_model()
        columns = model_class.__table__.columns.keys()
        entity = model_class(**{key: value for key, value in data.items() if key in columns})
        self.session.add(entity)
        self.session.flush()
        return entity

    def add(self, entity: T) -> T:
        self.session.add(entity)
        return entity
