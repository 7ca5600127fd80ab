"""Application entry point for Cardarr."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from cardarr.core.config import Settings, get_settings
from cardarr.core.database import create_database_engine, create_session_factory, create_tables
from cardarr.core.inventory import SqlInventoryProvider, SqlMatchStore
from cardarr.core.logging import setup_logging
from cardarr.core.matching import MatchDiscoveryEngine, PricingOracle
from cardarr.core.metrics import setup_metrics
from cardarr.core.middleware import TracingMiddleware
from cardarr.core.pricing import create_pricing_oracle
from cardarr.core.routes import create_app_router

logger = structlog.get_logger("cardarr.app")

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting Cardarr application",
        version=APP_VERSION,
        env=settings.env,
        host=settings.host_bind_address,
        port=settings.host_port,
        pricing_enabled=settings.pricing_enabled,
    )

    engine = app.state.engine
    await create_tables(engine)
    logger.info("Database schema ready", database_file=str(settings.database_file))

    yield

    logger.info("Shutting down Cardarr application")
    await engine.dispose()


def create_app(
    settings: Settings | None = None,
    pricing_oracle: PricingOracle | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Settings to use (default: get_settings())
        pricing_oracle: Price source override (default: from settings)

    Returns:
        Configured FastAPI app
    """
    if settings is None:
        settings = get_settings()

    setup_logging(debug=settings.is_debug, logs_dir=settings.logs_dir)

    app = FastAPI(title="Cardarr", version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings

    engine = create_database_engine(settings.database_file, echo=False)
    session_factory = create_session_factory(engine)
    app.state.engine = engine
    app.state.async_session_factory = session_factory

    match_store = SqlMatchStore(session_factory)
    app.state.match_store = match_store
    app.state.match_engine = MatchDiscoveryEngine(
        inventory=SqlInventoryProvider(session_factory),
        match_store=match_store,
        pricing_oracle=pricing_oracle or create_pricing_oracle(settings),
    )
    logger.info("Database engine and match engine created")

    app.add_middleware(TracingMiddleware)
    setup_metrics(app, APP_VERSION)
    app.include_router(create_app_router())

    return app


def main() -> None:
    """Main entry point."""
    from cardarr.core.config import reload_settings

    current_settings = reload_settings()
    app = create_app(current_settings)

    import uvicorn

    logger.info(
        "Starting uvicorn server",
        host=current_settings.host_bind_address,
        port=current_settings.host_port,
    )
    uvicorn.run(
        app,
        host=current_settings.host_bind_address,
        port=current_settings.host_port,
        log_config=None,  # We use structlog
    )


if __name__ == "__main__":
    main()
