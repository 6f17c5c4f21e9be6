"""
Engine and session factory for ShopDesk.

Routes obtain a request-scoped session through the ``get_db`` dependency;
services decide when that session commits.
"""

import logging
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **kwargs) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections get foreign-key enforcement switched on and may be
    shared across the request threads FastAPI uses.
    """
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    new_engine = create_engine(database_url, echo=settings.DB_ECHO, future=True, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine, "connect")
        def enforce_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    logger.info(f"Database engine created for {new_engine.url.render_as_string(hide_password=True)}")
    return new_engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield one session per request and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
