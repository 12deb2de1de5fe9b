"""API route definitions - Recommendations, differentials and manager rosters."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from fastapi.responses import JSONResponse

from app.api.errors import upstream_http_error
from app.config import get_settings
from app.dependencies import get_recommendation_store
from app.schemas.recommendations import (
    CaptainRecommendationsResponse,
    DifferentialPicksResponse,
    RosterResponse,
    TransferRecommendationsResponse,
)
from app.services.differentials import find_differential_picks
from app.services.fpl_client import FplApiClient, current_gameweek_from_events
from app.services.recommendation_service import (
    RecommendationsService,
    empty_transfer_response,
)
from app.services.recommendation_store import RecommendationStore
from app.services.roster import RosterNotFoundError, fetch_user_roster

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["recommendations"])

settings = get_settings()


# =============================================================================
# Route Parameters
# =============================================================================

ManagerIdPath = Annotated[int, Path(ge=1, description="FPL manager ID (must be positive)")]
GameweekQuery = Annotated[
    int | None,
    Query(ge=1, le=38, description="Gameweek override (defaults to the current gameweek)"),
]


# =============================================================================
# Helpers
# =============================================================================


def _fpl_client() -> FplApiClient:
    return FplApiClient(
        requests_per_second=settings.fpl_requests_per_second,
        base_url=settings.fpl_api_base_url,
    )


# =============================================================================
# Recommendations
# =============================================================================


@router.get("/recommendations/transfers", response_model=TransferRecommendationsResponse)
async def get_transfer_recommendations(
    manager_id: int | None = Query(default=None, ge=1, description="Personalize for this manager"),
    gameweek: GameweekQuery = None,
    store: RecommendationStore = Depends(get_recommendation_store),
) -> dict | JSONResponse:
    """
    Get ranked buy and sell recommendations.

    With manager_id the lists are personalized to the manager's roster. An
    unknown manager falls back to general recommendations.
    """
    try:
        async with _fpl_client() as client:
            service = RecommendationsService(
                client,
                store,
                fixture_horizon=settings.fixture_horizon,
                protect_premium_assets=settings.protect_premium_assets,
            )
            return await service.get_transfer_recommendations(
                manager_id=manager_id, gameweek=gameweek
            )
    except Exception as e:
        http_error = upstream_http_error(e)
        if http_error is not None:
            raise http_error from e
        logger.exception(f"Failed to build transfer recommendations: {e}")
        return JSONResponse(
            status_code=500,
            content=empty_transfer_response(0, "error", error=str(e)),
        )


@router.get("/recommendations/captains", response_model=CaptainRecommendationsResponse)
async def get_captain_recommendations(
    gameweek: GameweekQuery = None,
    store: RecommendationStore = Depends(get_recommendation_store),
) -> dict:
    """Get captain picks for a gameweek, ordered by rank."""
    try:
        async with _fpl_client() as client:
            service = RecommendationsService(client, store)
            return await service.get_captain_recommendations(gameweek=gameweek)
    except Exception as e:
        http_error = upstream_http_error(e)
        if http_error is not None:
            raise http_error from e
        logger.exception(f"Failed to get captain recommendations: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error while fetching captain recommendations",
        ) from e


@router.get("/recommendations/differentials", response_model=DifferentialPicksResponse)
async def get_differential_picks(
    limit: int | None = Query(default=None, ge=1, le=50, description="Maximum picks"),
) -> dict:
    """Get low-ownership players in form, best points per game first."""
    try:
        async with _fpl_client() as client:
            bootstrap = await client.get_bootstrap_static()
            fixtures = await client.get_fixtures()
    except Exception as e:
        http_error = upstream_http_error(e)
        if http_error is not None:
            raise http_error from e
        logger.exception(f"Failed to fetch data for differentials: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error while finding differential picks",
        ) from e

    picks = find_differential_picks(
        bootstrap.get("elements", []),
        bootstrap.get("teams", []),
        fixtures,
        limit=limit or settings.differential_limit,
    )
    return {
        "gameweek": current_gameweek_from_events(bootstrap.get("events", [])),
        "picks": picks,
        "total": len(picks),
    }


# =============================================================================
# Managers
# =============================================================================


@router.get("/managers/{manager_id}/roster", response_model=RosterResponse)
async def get_manager_roster(
    manager_id: ManagerIdPath,
    gameweek: GameweekQuery = None,
) -> dict:
    """Get a manager's squad with full player data for a gameweek."""
    try:
        async with _fpl_client() as client:
            bootstrap = await client.get_bootstrap_static()
            if gameweek is None:
                gameweek = current_gameweek_from_events(bootstrap.get("events", []))
            roster = await fetch_user_roster(client, manager_id, gameweek, bootstrap)
    except RosterNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        http_error = upstream_http_error(e)
        if http_error is not None:
            raise http_error from e
        logger.exception(f"Failed to get roster for manager {manager_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error while fetching manager roster",
        ) from e

    return roster.to_dict()
