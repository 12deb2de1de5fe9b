"""Recommendation API response schemas.

Recommendation rows are passed through as dicts: they carry the stored columns
plus the joined player snapshot and per-row scores, whose exact keys depend on
the FPL bootstrap payload.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

RecommendationStatus = Literal["success", "no_recommendations", "schema_issue", "error"]


class TransferRecommendationsResponse(BaseModel):
    """Buy and sell suggestions for a gameweek."""

    gameweek: int
    buy_recommendations: list[dict[str, Any]]
    sell_recommendations: list[dict[str, Any]]
    replacement_suggestions: list[dict[str, Any]] = Field(default_factory=list)
    updated_at: str
    is_personalized: bool = False
    status: RecommendationStatus
    error: str | None = None


class CaptainRecommendationsResponse(BaseModel):
    """Captain picks for a gameweek, ordered by rank."""

    gameweek: int
    recommendations: list[dict[str, Any]]
    updated_at: str
    status: RecommendationStatus = "success"


class DifferentialPick(BaseModel):
    """A low-ownership player worth considering."""

    id: int
    name: str
    team: str
    position: str
    price: float
    ownership: float
    expected_points: float
    next_fixture: str
    rank: int = Field(ge=1)


class DifferentialPicksResponse(BaseModel):
    """Differential picks ordered by rank."""

    gameweek: int
    picks: list[DifferentialPick]
    total: int


class RosterPickResponse(BaseModel):
    """One squad slot with its player snapshot."""

    model_config = ConfigDict(from_attributes=True)

    player: dict[str, Any]
    position: int
    multiplier: int
    is_captain: bool
    is_vice_captain: bool


class RosterResponse(BaseModel):
    """A manager's squad for one gameweek."""

    manager_id: int
    gameweek: int
    team: list[RosterPickResponse]
    team_by_position: dict[str, list[RosterPickResponse]]
    team_value: float
    active_chip: str | None = None
