"""Database engine and session management for ideaengage.

This module provides:
- Engine creation for SQLite (WAL mode, bounded busy timeout) or any
  SQLAlchemy URL such as PostgreSQL
- Schema creation, including the partial unique index that makes claims
  exclusive
- Short-lived sessions, one per request or unit of work

Every handler gets its own session; nothing in this module is shared mutable
state beyond the engine's connection pool.

Example:
    >>> from ideaengage.database import DatabaseManager
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>>
    >>> with db.session_scope() as session:
    ...     registry = ClaimRegistry(session)
    ...     registry.claim("idea-1", "user-1")
    >>>
    >>> db.close()
"""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from ideaengage.config import settings
from ideaengage.logging import logger
from ideaengage.metrics import active_database_connections


# =============================================================================
# Database Manager
# =============================================================================


class DatabaseManager:
    """Owns the SQLAlchemy engine and hands out sessions.

    Features:
    - WAL journal mode for SQLite so readers never block the single writer
    - ``timeout`` on SQLite connections so lock waits are bounded
    - In-memory SQLite support via a static pool (tests, TESTING profile)

    Args:
        database_url: SQLAlchemy URL (defaults to settings.database_url)
        database_path: Convenience for a SQLite file path; wins over the
            default URL but not over an explicit ``database_url``
        busy_timeout: Seconds a SQLite connection waits for a write lock
    """

    def __init__(
        self,
        database_url: str | None = None,
        database_path: Path | None = None,
        busy_timeout: float | None = None,
    ):
        if database_url is None and database_path is not None:
            database_url = f"sqlite:///{database_path}"
        self.database_url = database_url or settings.database_url
        self.database_path = database_path
        self.busy_timeout = busy_timeout or settings.database_busy_timeout
        self.engine: Engine | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and (
            self.database_url in ("sqlite://", "sqlite:///:memory:")
            or ":memory:" in self.database_url
        )

    def initialize(self) -> None:
        """Create the engine and all tables.

        This method:
        1. Creates the SQLite parent directory if needed
        2. Builds the engine with dialect-specific connection arguments
        3. Enables WAL and tuned PRAGMAs on every new SQLite connection
        4. Creates all tables and indexes from SQLModel metadata
        """
        from ideaengage import models  # noqa: F401  (register tables)

        kwargs: dict = {"echo": False}

        if self.is_sqlite:
            kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": self.busy_timeout,
            }
            if self.is_memory:
                kwargs["poolclass"] = StaticPool
            elif self.database_path is not None:
                self.database_path.parent.mkdir(parents=True, exist_ok=True)
        else:
            kwargs["pool_pre_ping"] = True

        self.engine = create_engine(self.database_url, **kwargs)

        if self.is_sqlite:
            event.listen(self.engine, "connect", _configure_sqlite_connection)

        event.listen(self.engine, "checkout", _on_checkout)
        event.listen(self.engine, "checkin", _on_checkin)

        SQLModel.metadata.create_all(self.engine)

        logger.info(f"✅ Database initialized at {self.redacted_url}")

    @property
    def redacted_url(self) -> str:
        from sqlalchemy.engine import make_url

        return make_url(self.database_url).render_as_string(hide_password=True)

    def session(self) -> Session:
        """Open a new session bound to the engine.

        Raises:
            RuntimeError: If initialize() has not been called
        """
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        return Session(self.engine)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Session context that rolls back on error and always closes.

        Services commit their own atomic writes; this scope only guarantees
        that a failed unit of work leaves no open transaction behind.
        """
        session = self.session()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def reset_schema(self) -> None:
        """Drop and recreate every table (used by ``ideaengage init --force``)."""
        if self.engine is None:
            raise RuntimeError("Database not initialized")
        SQLModel.metadata.drop_all(self.engine)
        SQLModel.metadata.create_all(self.engine)
        logger.warning("⚠️ Database schema recreated")

    def close(self) -> None:
        """Dispose the engine and its pooled connections."""
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode = WAL;")
        cursor.execute("PRAGMA synchronous = NORMAL;")
        cursor.execute("PRAGMA foreign_keys = ON;")
        cursor.execute("PRAGMA temp_store = MEMORY;")
    finally:
        cursor.close()


def _on_checkout(dbapi_connection, connection_record, connection_proxy) -> None:
    active_database_connections.inc()


def _on_checkin(dbapi_connection, connection_record) -> None:
    active_database_connections.dec()


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["DatabaseManager"]
