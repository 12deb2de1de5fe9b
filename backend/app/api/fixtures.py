"""Fixtures API routes - Upcoming fixture windows and fixture scores per team."""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query
from pydantic import BaseModel, Field

from app.api.errors import upstream_http_error
from app.config import get_settings
from app.services.fpl_client import FplApiClient, current_gameweek_from_events
from app.services.recommendations import (
    build_fixture_window,
    calculate_clean_sheet_potential,
    calculate_fixture_difficulty_score,
    calculate_forward_score_chance,
    calculate_midfield_score_chance,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/fixtures", tags=["fixtures"])

settings = get_settings()


def _fpl_client() -> FplApiClient:
    return FplApiClient(
        requests_per_second=settings.fpl_requests_per_second,
        base_url=settings.fpl_api_base_url,
    )


# =============================================================================
# Pydantic Response Models
# =============================================================================


class FixtureWindowEntry(BaseModel):
    """One upcoming match from the team's point of view."""

    opponent: int
    difficulty: int = Field(ge=1, le=5)
    is_home: bool
    event: int | None = Field(ge=1, le=38, default=None)


class FixtureScores(BaseModel):
    """Position fixture scores for a window (0 for an empty window)."""

    clean_sheet_potential: float
    midfield_score_chance: float
    forward_score_chance: float
    fixture_difficulty: float = Field(description="Higher means harder fixtures")


class TeamFixtureWindowResponse(BaseModel):
    """Response for GET /team/{team_id}."""

    team_id: int
    gameweek: int
    horizon: int
    fixtures: list[FixtureWindowEntry]
    scores: FixtureScores


# =============================================================================
# Routes
# =============================================================================

TeamIdPath = Annotated[int, Path(ge=1, le=20, description="FPL team ID (1-20)")]


@router.get("/team/{team_id}", response_model=TeamFixtureWindowResponse)
async def get_team_fixture_window(
    team_id: TeamIdPath,
    horizon: int | None = Query(default=None, ge=1, le=10, description="Gameweeks ahead"),
    gameweek: int | None = Query(default=None, ge=1, le=38, description="First gameweek"),
) -> dict:
    """
    Get a team's upcoming fixtures and the fixture scores used for recommendations.

    The window covers gameweek through gameweek + horizon.
    """
    horizon = horizon or settings.fixture_horizon

    try:
        async with _fpl_client() as client:
            fixtures = await client.get_fixtures()
            if gameweek is None:
                bootstrap = await client.get_bootstrap_static()
                gameweek = current_gameweek_from_events(bootstrap.get("events", []))
    except Exception as e:
        http_error = upstream_http_error(e)
        if http_error is not None:
            raise http_error from e
        logger.exception(f"Failed to get fixtures for team {team_id}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error while fetching fixtures",
        ) from e

    window = build_fixture_window(team_id, fixtures, gameweek, horizon)
    return {
        "team_id": team_id,
        "gameweek": gameweek,
        "horizon": horizon,
        "fixtures": [entry.to_dict() for entry in window],
        "scores": {
            "clean_sheet_potential": calculate_clean_sheet_potential(window),
            "midfield_score_chance": calculate_midfield_score_chance(window),
            "forward_score_chance": calculate_forward_score_chance(window),
            "fixture_difficulty": calculate_fixture_difficulty_score(window),
        },
    }
