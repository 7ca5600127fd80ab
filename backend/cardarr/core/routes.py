"""Application routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter

from cardarr.routes import general, matches

logger = structlog.get_logger("cardarr.routes")


def create_app_router() -> APIRouter:
    """Create and configure main application router."""
    router = APIRouter()
    router.include_router(general.router, tags=["general"])
    router.include_router(matches.router)
    logger.debug("Included matches router in app_router")
    return router
