"""Tests for tracing and the tracing middleware."""

from __future__ import annotations

from pathlib import Path

import pytest
import structlog
from fastapi.testclient import TestClient

from cardarr.app import create_app
from cardarr.core.config import Settings
from cardarr.core.tracing import generate_trace_id, get_trace_id, trace_context


@pytest.fixture
def client(tmp_path: Path) -> TestClient:
    """Create test client."""
    app = create_app(Settings(data_dir=tmp_path / "data", env="testing"))
    return TestClient(app)


def test_generate_trace_id() -> None:
    trace_id = generate_trace_id()

    assert isinstance(trace_id, str)
    assert len(trace_id) == 32
    assert len({generate_trace_id() for _ in range(100)}) == 100


def test_trace_context_manager() -> None:
    structlog.contextvars.clear_contextvars()

    with trace_context("test-trace-456") as trace_id:
        assert trace_id == "test-trace-456"
        assert structlog.contextvars.get_contextvars().get("trace_id") == "test-trace-456"

    assert get_trace_id() is None


def test_trace_context_nested_restores_outer() -> None:
    structlog.contextvars.clear_contextvars()

    with trace_context("outer-trace"):
        with trace_context() as inner_id:
            assert get_trace_id() == inner_id
            assert len(inner_id) == 32
        assert get_trace_id() == "outer-trace"

    assert get_trace_id() is None


def test_trace_id_header_added_to_response(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert len(response.headers["X-Trace-ID"]) == 32
    assert response.json()["trace_id"] == response.headers["X-Trace-ID"]


def test_trace_id_header_preserved(client: TestClient) -> None:
    response = client.get("/api/health", headers={"X-Trace-ID": "custom-trace-id"})

    assert response.headers["X-Trace-ID"] == "custom-trace-id"


def test_trace_id_different_for_each_request(client: TestClient) -> None:
    first = client.get("/api/health").headers["X-Trace-ID"]
    second = client.get("/api/health").headers["X-Trace-ID"]

    assert first != second
