"""Tests for logging functionality."""

from __future__ import annotations

import io
import json
import logging
import sys
from pathlib import Path

import structlog

from cardarr.core.logging import ExcInfo, exception_processor, format_exception_for_json, setup_logging


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.strip().startswith("{")]


def test_format_exception_for_json_with_exception() -> None:
    try:
        raise ValueError("Test error message")
    except ValueError:
        exc_info: ExcInfo = sys.exc_info()  # type: ignore[assignment]

    result = format_exception_for_json(exc_info)

    assert result["exception_type"] == "ValueError"
    assert result["exception_message"] == "Test error message"
    assert result["exception_module"] == "builtins"
    frames = result["traceback_frames"]
    assert isinstance(frames, list) and frames
    assert {"filename", "lineno", "function"} <= set(frames[0])
    assert "ValueError: Test error message" in result["traceback_text"]


def test_format_exception_for_json_without_exception() -> None:
    assert format_exception_for_json(None) == {}
    assert format_exception_for_json((None, None, None)) == {}


def test_exception_processor_accepts_exception_instance() -> None:
    try:
        raise KeyError("card")
    except KeyError as exc:
        event = exception_processor(None, "error", {"event": "boom", "exc_info": exc})  # type: ignore[arg-type]

    assert event["exception"]["exception_type"] == "KeyError"
    assert event["exception_summary"] == "KeyError: 'card'"


def test_exception_logging_in_json() -> None:
    old_stdout = sys.stdout
    sys.stdout = io.StringIO()
    try:
        setup_logging(debug=False)
        logger = structlog.get_logger("test.logger")

        try:
            raise ValueError("Test error")
        except ValueError:
            logger.exception("An error occurred", extra="context")

        log_data = _json_lines(sys.stdout.getvalue())[-1]
    finally:
        sys.stdout = old_stdout

    assert log_data["event"] == "An error occurred"
    assert log_data["exception"]["exception_type"] == "ValueError"
    assert "ValueError: Test error" in log_data["exception_summary"]


def test_logging_includes_bound_context() -> None:
    old_stdout = sys.stdout
    sys.stdout = io.StringIO()
    try:
        setup_logging(debug=False)
        with structlog.contextvars.bound_contextvars(discovery_run_id="run-1", user_id="ash"):
            structlog.get_logger("test.logger").info("Starting match discovery")

        log_data = _json_lines(sys.stdout.getvalue())[-1]
    finally:
        sys.stdout = old_stdout

    assert log_data["discovery_run_id"] == "run-1"
    assert log_data["user_id"] == "ash"
    assert log_data["level"] == "info"


def test_file_logging(tmp_path: Path) -> None:
    logs_dir = tmp_path / "logs"
    setup_logging(debug=False, logs_dir=logs_dir)

    structlog.get_logger("test.logger").warning("Written to file", card="Mew")
    logging.getLogger("sqlalchemy.engine").warning("slow query")
    logging.getLogger("httpx").warning("pricing request failed")
    for handler in logging.getLogger().handlers:
        handler.flush()
    logging.getLogger("sqlalchemy.engine").handlers[0].flush()
    logging.getLogger("httpx").handlers[0].flush()

    app_lines = _json_lines((logs_dir / "cardarr.json.log").read_text())
    db_lines = _json_lines((logs_dir / "cardarr.db.json.log").read_text())
    http_lines = _json_lines((logs_dir / "cardarr.http.json.log").read_text())

    assert any(line.get("event") == "Written to file" and line.get("card") == "Mew" for line in app_lines)
    assert db_lines[-1]["message"] == "slow query"
    assert db_lines[-1]["logger"] == "sqlalchemy.engine"
    assert http_lines[-1]["message"] == "pricing request failed"

    # Leave global logging on stdout for the rest of the session
    setup_logging(debug=False)
