import logging
import sqlite3
from datetime import timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import DateTime, TypeDecorator

from run_tracker.core.config import settings

logger = logging.getLogger(__name__)

# SQLAlchemy Base class for models to inherit
Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores datetimes as naive UTC and hands them back as aware UTC.

    SQLite drops tzinfo on write, so values are normalized to UTC on the way
    in and re-tagged on the way out. Ordering by the column then matches
    chronological order on every backend.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is set per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_engine(url: str) -> Engine:
    """Create an engine for `url`.

    In-memory SQLite gets a single shared connection so every session (and
    every TestClient thread) sees the same database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith(("sqlite:", "pysqlite:")):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)  # helps avoid stale connections


def create_database(bind: Engine) -> None:
    """Create the files/sessions/laps/track_points tables if missing."""
    # import ensures tables are registered on Base.metadata
    from run_tracker.models import activity_file, lap, session, track_point  # noqa: F401

    Base.metadata.create_all(bind=bind)
    logger.debug("Database schema ready at %s", bind.url)


engine = make_engine(settings.database_url)

# Factory that creates DB sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency we will use in FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
