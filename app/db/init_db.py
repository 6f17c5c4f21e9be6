# File: app/db/init_db.py
"""
Database initialization script.

Creates the tables and the first manager account when it is missing.
"""

import logging
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.models import Base, UserRole
from app.db.session import SessionLocal, engine
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


def init(db: Session) -> None:
    """
    Initialize database with tables and initial data.

    Args:
        db: SQLAlchemy database session
    """
    Base.metadata.create_all(bind=db.get_bind())

    if not settings.FIRST_MANAGER_PASSWORD:
        logger.info("FIRST_MANAGER_PASSWORD not set; skipping initial manager account")
        return

    user_service = UserService(db)
    if user_service.get_by_email(settings.FIRST_MANAGER_EMAIL):
        logger.info(f"Manager account already exists: {settings.FIRST_MANAGER_EMAIL}")
        return

    logger.info(f"Creating initial manager account: {settings.FIRST_MANAGER_EMAIL}")
    user = user_service.create_user(
        email=settings.FIRST_MANAGER_EMAIL,
        password=settings.FIRST_MANAGER_PASSWORD,
        full_name=settings.FIRST_MANAGER_NAME,
        role=UserRole.MANAGER,
    )
    logger.info(f"Manager account created with ID: {user.id}")


def main() -> None:
    """Run database initialization."""
    logging.basicConfig(level=logging.INFO)
    logger.info(f"Initializing database at {engine.url.render_as_string(hide_password=True)}")
    db = SessionLocal()
    try:
        init(db)
    finally:
        db.close()
    logger.info("Database initialization finished")


if __name__ == "__main__":
    main()
