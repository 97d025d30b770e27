from collections.abc import Generator

from sqlalchemy.orm import Session

from policy_review.core.config import Settings, get_settings
from policy_review.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Yield a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_app_settings() -> Settings:
    return get_settings()


__all__ = ["get_db", "get_app_settings"]
