"""Tests for database setup and lock retries."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from cardarr.core.database import (
    create_database_engine,
    create_tables,
    is_lock_error,
    retry_db_operation,
)
from cardarr.core.metrics import db_lock_errors_total, db_retries_failed_total


@pytest.mark.asyncio
async def test_engine_uses_wal_and_creates_tables(tmp_path: Path) -> None:
    engine = create_database_engine(tmp_path / "test.db", echo=False)
    try:
        await create_tables(engine)

        async with engine.connect() as conn:
            journal_mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
            tables = (
                await conn.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
            ).scalars().all()
    finally:
        await engine.dispose()

    assert journal_mode == "wal"
    assert {"users", "cards", "matches"} <= set(tables)


@pytest.mark.asyncio
async def test_retry_operation_success_first_try() -> None:
    call_count = 0

    async def successful_operation() -> str:
        nonlocal call_count
        call_count += 1
        return "success"

    assert await retry_db_operation(successful_operation, operation_type="test") == "success"
    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_operation_recovers_from_lock() -> None:
    call_count = 0
    before = db_lock_errors_total._value.get()

    async def flaky_operation() -> str:
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise OperationalError("statement", "parameters", Exception("database is locked"))
        return "success"

    result = await retry_db_operation(
        flaky_operation, max_retries=3, retry_delay=0.01, operation_type="test_lock"
    )

    assert result == "success"
    assert call_count == 2
    assert db_lock_errors_total._value.get() == before + 1


@pytest.mark.asyncio
async def test_retry_operation_gives_up() -> None:
    failed = db_retries_failed_total.labels(operation_type="test_failed")
    before = failed._value.get()

    async def always_locked() -> str:
        raise OperationalError("statement", "parameters", Exception("database is locked"))

    with pytest.raises(OperationalError):
        await retry_db_operation(
            always_locked, max_retries=2, retry_delay=0.01, operation_type="test_failed"
        )

    assert failed._value.get() == before + 1


@pytest.mark.asyncio
async def test_non_lock_errors_are_not_retried() -> None:
    call_count = 0

    async def broken() -> str:
        nonlocal call_count
        call_count += 1
        raise OperationalError("statement", "parameters", Exception("no such table: cards"))

    with pytest.raises(OperationalError):
        await retry_db_operation(broken, max_retries=5, retry_delay=0.01)

    assert call_count == 1


def test_is_lock_error() -> None:
    assert is_lock_error(OperationalError("stmt", {}, Exception("database is locked")))
    assert is_lock_error(OperationalError("stmt", {}, Exception("database is busy")))
    assert not is_lock_error(OperationalError("stmt", {}, Exception("disk I/O error")))
