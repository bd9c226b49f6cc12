"""
Database Configuration
======================
SQLite for local development, any SQLAlchemy URL (PostgreSQL, SQL Server) in production.
The ORM is synchronous; async callers hop onto the default executor.
"""

import asyncio
import contextvars
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import BackendUnavailable

Base = declarative_base()

T = TypeVar("T")

# Connection and pool failures; anything else is a bug and propagates as is
UNAVAILABLE_ERRORS = (OperationalError, DisconnectionError, PoolTimeoutError)


def build_engine(database_url: str) -> Engine:
    """Create an engine with settings appropriate for the URL's dialect."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection so every thread sees the same in-memory db
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=2,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=False,
    )


class Database:
    """Engine plus session factory shared by every SQL-backed store."""

    backend = "sql"

    def __init__(self, database_url: str):
        self.url = database_url
        self.engine = build_engine(database_url)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        """Create any missing tables."""
        from .. import models  # noqa: F401  registers tables on Base.metadata

        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Transactional scope: commit on success, roll back on error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def run(self, fn: Callable[..., T], *args) -> T:
        """
        Run blocking ORM work on the default executor.
        Connection failures surface as BackendUnavailable.
        """
        loop = asyncio.get_event_loop()
        ctx = contextvars.copy_context()
        try:
            return await loop.run_in_executor(None, ctx.run, fn, *args)
        except UNAVAILABLE_ERRORS as e:
            raise BackendUnavailable(self.backend, str(e)) from e

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        self.engine.dispose()
