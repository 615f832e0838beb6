"""Database engine and sessions for the monitor's tables."""

import logging
from collections.abc import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from traderwatch.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared with worker threads."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(settings.database_url)


def create_db_and_tables(db_engine: Engine = engine):
    """Create tracked_trader, position_record and notification_log if missing."""
    import traderwatch.models  # noqa: F401  registers table metadata

    SQLModel.metadata.create_all(db_engine)
    logger.info(f"Database tables ready ({db_engine.url.get_backend_name()})")


def get_session() -> Iterator[Session]:
    """FastAPI dependency yielding one session per request."""
    with Session(engine) as session:
        yield session
