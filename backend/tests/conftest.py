"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from prometheus_client import REGISTRY

from cardarr.core.config import get_settings, reload_settings
from cardarr.core.matching.config import reload_matching_config


@pytest.fixture(autouse=True)
def isolated_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    """Point settings and matching config at an empty data directory."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("CARDARR_DATA_DIR", str(data_dir))
    reload_settings()
    reload_matching_config()

    yield data_dir

    monkeypatch.delenv("CARDARR_DATA_DIR", raising=False)
    get_settings.cache_clear()
    reload_matching_config()


@pytest.fixture(autouse=True)
def reset_prometheus_registry() -> Iterator[None]:
    """Reset Prometheus registry before each test to avoid duplicate metric registration.

    setup_metrics() registers instrumentator metrics in the global registry, so
    every test that creates an app would otherwise collide with the previous one.
    """
    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)

    yield

    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)
