# backend/portfolio_tracker/database.py
"""
Database engine and session management.

SQLite (the default) uses a single shared connection when in-memory so every
session sees the same database; other backends use SQLAlchemy's default pool
with pre-ping.
"""

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)


def _create_engine() -> Engine:
    if settings.is_sqlite:
        logger.info(f"Configuring SQLite database ({settings.database_url})")
        in_memory = ":memory:" in settings.database_url
        return create_engine(
            settings.database_url,
            poolclass=StaticPool if in_memory else None,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    logger.info("Configuring pooled database connection")
    return create_engine(settings.database_url, pool_pre_ping=True, echo=settings.debug)


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create tables that do not exist yet."""
    from .models import Base

    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_database_health() -> dict:
    """Run a trivial query; used by the health endpoint."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}
