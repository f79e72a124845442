"""
Database Engine Module
======================

One process-wide Database: the engine and session factory shared by
request handlers, the enrichment daemon and scheduled enrichment tasks.
EnrichmentEngine opens its own sessions from this factory, so every
writer in the process goes through the same connection pool.

The location comes from DATABASE_URL (a full SQLAlchemy URL or a bare
SQLite path), defaulting to ~/.wine_pipeline/wine_pipeline.db.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".wine_pipeline" / "wine_pipeline.db"

# Seconds a SQLite writer waits on a lock held by another writer
SQLITE_BUSY_TIMEOUT = 30

_MIGRATIONS_DIR = Path(__file__).parent / "migrations"
_ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def get_database_url() -> str:
    """Resolve DATABASE_URL, creating the parent directory of SQLite files."""
    value = os.environ.get("DATABASE_URL", "").strip()
    if "://" in value:
        return value
    path = Path(value).expanduser() if value else DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, url: str):
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            # Sessions cross threads (TestClient, uvicorn workers) and the
            # daemon writes while requests do
            connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
        self.engine: Engine = create_engine(url, connect_args=connect_args)
        self.session_factory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, autoflush=False
        )

    def create_tables(self) -> None:
        from wine_pipeline.db.models import Base

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


_database: Database | None = None


def get_database() -> Database:
    """Get the process-wide Database, creating it on first use."""
    global _database
    if _database is None:
        _database = Database(get_database_url())
        logger.debug(f"Database opened: {_database.url}")
    return _database


def get_session_factory() -> sessionmaker[Session]:
    """Session factory handed to EnrichmentEngine and the daemon."""
    return get_database().session_factory


@contextmanager
def get_session() -> Iterator[Session]:
    """
    Open a session on the shared database and close it afterwards.

    Callers commit their own work:

        with get_session() as session:
            WineRepository(session).create(record)
            session.commit()
    """
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Create any missing tables. Migrations are the production path."""
    get_database().create_tables()


def reset_engine() -> None:
    """Dispose the shared Database so the next use re-reads DATABASE_URL."""
    global _database
    if _database is not None:
        _database.dispose()
    _database = None


def run_migrations() -> None:
    """Upgrade the shared database to the latest Alembic revision."""
    if not _ALEMBIC_INI.exists():
        raise FileNotFoundError(f"Alembic config not found: {_ALEMBIC_INI}")

    config = Config(str(_ALEMBIC_INI))
    config.set_main_option("script_location", str(_MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", get_database().url)
    command.upgrade(config, "head")
