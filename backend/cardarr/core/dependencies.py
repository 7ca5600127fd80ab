"""FastAPI dependencies for the matching services."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from cardarr.core.inventory import SqlMatchStore
from cardarr.core.matching.engine import MatchDiscoveryEngine


def get_match_engine(request: Request) -> MatchDiscoveryEngine:
    """Discovery engine created at startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    engine = getattr(request.app.state, "match_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Match engine not initialized",
        )
    return engine


def get_match_store(request: Request) -> SqlMatchStore:
    """Match store created at startup."""
    store = getattr(request.app.state, "match_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Match store not initialized",
        )
    return store
