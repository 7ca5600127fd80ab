"""Trade match routes: generate, list and advance matches."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from cardarr.core.dependencies import get_match_engine, get_match_store
from cardarr.core.inventory import SqlMatchStore
from cardarr.core.matching import (
    InvalidStatusTransitionError,
    InventoryUnavailableError,
    Match,
    MatchDiscoveryEngine,
    MatchNotFoundError,
    MatchOptions,
    MatchPersistenceError,
    MatchStatus,
    match_to_dict,
)
from cardarr.core.tracing import get_trace_id

router = APIRouter(prefix="/api/matches", tags=["matches"])
logger = structlog.get_logger("cardarr.routes.matches")


# Request/Response Models
class GenerateMatchesRequest(BaseModel):
    """Request model for a discovery run."""

    user_id: str = Field(..., min_length=1, description="Initiating user")
    max_value_difference: float | None = Field(
        default=None, ge=0, description="Drop pairs whose price gap exceeds this"
    )
    min_match_score: float | None = Field(default=None, ge=0, le=100)
    value_tolerance: float | None = Field(
        default=None, ge=0, le=100, description="Value parity tolerance, percent"
    )
    exclude_user_ids: list[str] = Field(default_factory=list)
    preferred_conditions: list[str] = Field(
        default_factory=list, description="Only consider counterparty cards in these conditions"
    )

    def to_options(self) -> MatchOptions:
        return MatchOptions(
            max_value_difference=self.max_value_difference,
            min_match_score=self.min_match_score,
            value_tolerance=self.value_tolerance,
            exclude_user_ids=list(self.exclude_user_ids),
            preferred_conditions=list(self.preferred_conditions),
        )


class MatchResponse(BaseModel):
    """Match response model."""

    id: str
    user1_id: str
    user2_id: str
    user1_card_id: str
    user2_card_id: str
    match_score: int
    value_difference: float
    mutual_benefit_score: float
    confidence: str
    status: str
    created_at: int
    trade_score: dict[str, Any]
    pricing: dict[str, Any]
    rank: int | None = None


class MatchListResponse(BaseModel):
    """Response model for a list of matches."""

    matches: list[MatchResponse]
    total: int


class MatchStatusUpdate(BaseModel):
    """Request model for changing a match's status."""

    status: MatchStatus


def _to_response(matches: list[Match], ranked: bool = False) -> MatchListResponse:
    return MatchListResponse(
        matches=[
            MatchResponse(**match_to_dict(match, rank=index + 1 if ranked else None))
            for index, match in enumerate(matches)
        ],
        total=len(matches),
    )


@router.post("/generate", response_model=MatchListResponse)
async def generate_matches(
    payload: GenerateMatchesRequest,
    engine: MatchDiscoveryEngine = Depends(get_match_engine),
) -> MatchListResponse | JSONResponse:
    """Discover matches for a user and replace their pending matches.

    No matches is a 200 with an empty list. A failed discovery is a 503. A
    failed save is a 500 whose body still carries the discovered matches.
    """
    logger.info("Match generation requested", user_id=payload.user_id)

    try:
        matches = await engine.generate_matches(payload.user_id, payload.to_options())
    except InventoryUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Match discovery failed: {e.reason}",
        ) from e
    except MatchPersistenceError as e:
        body = _to_response(e.matches, ranked=True).model_dump()
        body["detail"] = f"Failed to save matches: {e.reason}"
        body["trace_id"] = get_trace_id()
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)

    return _to_response(matches, ranked=True)


@router.get("", response_model=MatchListResponse)
async def list_matches(
    user_id: str = Query(..., min_length=1),
    match_status: MatchStatus | None = Query(default=None, alias="status"),
    store: SqlMatchStore = Depends(get_match_store),
) -> MatchListResponse:
    """Stored matches where the user is either party."""
    matches = await store.list_matches(user_id, match_status)
    return _to_response(matches)


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: str,
    store: SqlMatchStore = Depends(get_match_store),
) -> MatchResponse:
    try:
        match = await store.get_match(match_id)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return MatchResponse(**match_to_dict(match))


@router.patch("/{match_id}/status", response_model=MatchResponse)
async def update_match_status(
    match_id: str,
    payload: MatchStatusUpdate,
    store: SqlMatchStore = Depends(get_match_store),
) -> MatchResponse:
    """Accept, decline or complete a match."""
    try:
        match = await store.update_match_status(match_id, payload.status)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return MatchResponse(**match_to_dict(match))
