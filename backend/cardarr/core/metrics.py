"""Prometheus metrics configuration."""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

logger = structlog.get_logger("cardarr.metrics")

# Application info
app_info = Gauge(
    "app_info",
    "Application information",
    ["version"],
)

# Match discovery
discovery_runs_total = Counter(
    "discovery_runs_total",
    "Total number of match discovery runs",
    ["outcome"],  # outcome: matches, no_matches, failed, persistence_failed
)
discovery_duration_seconds = Histogram(
    "discovery_duration_seconds",
    "Duration of match discovery runs in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
discovery_matches_returned = Histogram(
    "discovery_matches_returned",
    "Number of matches returned per discovery run",
    buckets=(0, 1, 5, 10, 25, 50),
)
discovery_counterparty_failures_total = Counter(
    "discovery_counterparty_failures_total",
    "Counterparties skipped because processing raised an error",
)
discovery_timeouts_total = Counter(
    "discovery_timeouts_total",
    "Discovery runs that hit the overall timeout and returned partial results",
)

# Pricing lookups
pricing_lookups_total = Counter(
    "pricing_lookups_total",
    "Live price lookups by result",
    ["result"],  # result: hit, miss, timeout, error
)

# Database retry operation metrics
db_retry_attempts_total = Counter(
    "db_retry_attempts_total",
    "Total number of database operation retry attempts",
    ["operation_type"],
)
db_lock_errors_total = Counter(
    "db_lock_errors_total",
    "Total number of database lock errors encountered",
)
db_retries_failed_total = Counter(
    "db_retries_failed_total",
    "Total number of database operations that failed after all retries",
    ["operation_type"],
)


def setup_metrics(app: FastAPI, app_version: str) -> None:
    """Setup Prometheus metrics using prometheus-fastapi-instrumentator.

    Args:
        app: FastAPI application instance
        app_version: Application version
    """
    if getattr(app.state, "_metrics_initialized", False):
        logger.debug("Metrics already initialized for this app instance, skipping")
        return

    instrumentator = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[
            "/metrics",
            "/docs",
            "/openapi.json",
            "/redoc",
        ],
    )
    instrumentator.instrument(app).expose(app, endpoint="/metrics")

    app.state._metrics_initialized = True
    app_info.labels(version=app_version).set(1)

    logger.info("Metrics initialized", version=app_version)
