"""
Database configuration and connection handling.

SQLite by default; point DATABASE_URL at PostgreSQL for shared deployments.
The engine is created by the app lifespan (or init_db.py), not on import.
"""

import logging
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from backend.config import config
from backend.exceptions import UpstreamUnavailable
from .models import Base

logger = logging.getLogger(__name__)

engine: Engine | None = None
SessionLocal = None


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": config.SQLALCHEMY_ECHO, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        # Sessions are used from FastAPI's threadpool workers.
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(pool_size=5, max_overflow=10, pool_recycle=3600)
    return options


def _ping(target: Engine) -> None:
    with target.connect() as conn:
        conn.execute(text("SELECT 1"))


def init_engine(database_url: Optional[str] = None) -> Engine | None:
    """
    Create the engine and session factory.

    Args:
        database_url: SQLAlchemy URL; defaults to config.DATABASE_URL

    Returns:
        The engine, or None when the database cannot be reached
    """
    global engine, SessionLocal

    url = database_url or config.DATABASE_URL
    redacted = url.split("@")[-1]
    try:
        candidate = create_engine(url, **_engine_options(url))
        _ping(candidate)
    except Exception as e:
        logger.error(f"Failed to connect to database {redacted}: {e}")
        engine, SessionLocal = None, None
        return None

    engine = candidate
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.info(f"Database connected: {redacted}")
    return engine


def is_database_available() -> bool:
    if engine is None:
        return False
    try:
        _ping(engine)
    except Exception:
        return False
    return True


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database session.

    Usage: db: Session = Depends(get_db)

    Raises:
        UpstreamUnavailable: when the engine was never initialized
    """
    if SessionLocal is None:
        raise UpstreamUnavailable("Database is not available")

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables (for initial setup)."""
    if engine is not None:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
