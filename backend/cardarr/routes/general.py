"""General API routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cardarr.core.tracing import get_trace_id

router = APIRouter(prefix="/api")
logger = structlog.get_logger("cardarr.routes.general")


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Health check endpoint.

    Reports "degraded" with a 503 when the database cannot be queried.
    """
    database_ok = True
    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        database_ok = False
        logger.warning("Health check database probe failed", error=str(exc))

    settings = request.app.state.settings
    return JSONResponse(
        {
            "status": "healthy" if database_ok else "degraded",
            "version": request.app.version,
            "database": "ok" if database_ok else "unavailable",
            "pricing": "live" if settings.pricing_enabled else "stored",
            "trace_id": get_trace_id(),
        },
        status_code=200 if database_ok else 503,
    )
