"""Database configuration and setup for Cardarr.

Handles SQLite async database setup with proper concurrency handling:
- WAL mode for better concurrent reads/writes
- Retry logic for database locks
- Session factory for dependency injection
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from cardarr.core.metrics import (
    db_lock_errors_total,
    db_retries_failed_total,
    db_retry_attempts_total,
)
from cardarr.db.models import metadata

logger = structlog.get_logger("cardarr.database")

T = TypeVar("T")


def create_database_engine(
    database_file: Path | str,
    echo: bool = False,
) -> AsyncEngine:
    """Create and configure the database engine for async SQLite.

    Args:
        database_file: Path to the SQLite database file.
        echo: If True, log all SQL statements (useful for debugging).

    Returns:
        Configured AsyncEngine instance.
    """
    database_url = f"sqlite+aiosqlite:///{database_file}"

    engine = create_async_engine(
        database_url,
        echo=echo,
        connect_args={"timeout": 30.0},  # Wait up to 30 seconds for locks to be released
        pool_pre_ping=True,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
        """Enable WAL mode and foreign keys."""
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    logger.info(
        "Database engine created",
        database_file=str(database_file),
        echo=echo,
    )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[SQLModelAsyncSession]:
    """Create a session factory for database sessions.

    expire_on_commit=False is important for async sessions to avoid lazy loading issues.

    Args:
        engine: The database engine.

    Returns:
        Configured async_sessionmaker instance.
    """
    return async_sessionmaker(
        engine,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on the SQLModel metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.debug("Database tables ensured")


def is_lock_error(exc: OperationalError) -> bool:
    """SQLite reports contention as "database is locked" or "database is busy"."""
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "locked" in message or "busy" in message


async def retry_db_operation(
    operation: Callable[[], Awaitable[T]],
    session: SQLModelAsyncSession | None = None,
    max_retries: int = 5,
    retry_delay: float = 0.1,
    operation_type: str = "unknown",
) -> T:
    """Run a database operation, retrying SQLite lock errors with exponential backoff.

    Match replacement and status updates write while discovery runs for other
    users read, so short lock waits are expected under load.

    Args:
        operation: Callable returning an awaitable (not already awaited).
        session: Optional session to roll back between attempts.
        max_retries: Total number of attempts.
        retry_delay: Initial delay in seconds, doubled with each retry.
        operation_type: Label for metrics ("query", "insert", "commit", ...).

    Raises:
        OperationalError: Non-lock errors immediately, lock errors once attempts run out.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except OperationalError as exc:
            retryable = is_lock_error(exc)
            if not retryable or attempt >= max_retries:
                db_retries_failed_total.labels(operation_type=operation_type).inc()
                logger.error(
                    "Database operation failed",
                    attempt=attempt,
                    max_retries=max_retries,
                    operation_type=operation_type,
                    lock_error=retryable,
                    error=str(exc)[:200],
                    error_type=type(exc).__name__,
                )
                raise

            db_lock_errors_total.inc()
            db_retry_attempts_total.labels(operation_type=operation_type).inc()
            delay = retry_delay * (2 ** (attempt - 1))
            logger.debug(
                "Database lock detected, retrying",
                attempt=attempt,
                max_retries=max_retries,
                operation_type=operation_type,
                delay=delay,
            )

            if session is not None:
                await session.rollback()
            await asyncio.sleep(delay)
