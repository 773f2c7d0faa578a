"""Database connection and session management."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import DatabaseConfig
from ..core.logger import get_logger
from .models import Base

logger = get_logger("storage.database")


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Manages the engine and sessions of the workflow data store."""

    def __init__(self, database_url: str = "sqlite:///./driveflow.db", echo: bool = False) -> None:
        """Initialize the database manager.

        Args:
            database_url: SQLAlchemy database URL
            echo: Log every SQL statement
        """
        logger.info("Initializing database with URL: %s", database_url)

        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
            if ":memory:" in database_url or database_url == "sqlite://":
                # A single shared connection so every session sees the same database
                self._engine = create_engine(
                    database_url,
                    connect_args=connect_args,
                    poolclass=StaticPool,
                    echo=echo,
                )
            else:
                self._engine = create_engine(database_url, connect_args=connect_args, echo=echo)
            event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self._engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self._engine,
        )

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> DatabaseManager:
        return cls(config.url, echo=config.echo)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_tables(self) -> None:
        """Create all database tables if they don't exist."""
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=self._engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        logger.warning("Dropping all database tables...")
        Base.metadata.drop_all(bind=self._engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session with automatic commit/rollback.

        Yields:
            SQLAlchemy Session object
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self._engine.dispose()


def init_database(database_url: str = "sqlite:///./driveflow.db") -> DatabaseManager:
    """Initialize the database and create tables.

    Example:
        ```python
        db = init_database("sqlite:///./driveflow.db")
        ```
    """
    db = DatabaseManager(database_url)
    db.create_tables()
    return db
