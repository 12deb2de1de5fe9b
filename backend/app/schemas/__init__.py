"""API response schemas."""

from app.schemas.recommendations import (
    CaptainRecommendationsResponse,
    DifferentialPick,
    DifferentialPicksResponse,
    RosterPickResponse,
    RosterResponse,
    TransferRecommendationsResponse,
)

__all__ = [
    "CaptainRecommendationsResponse",
    "DifferentialPick",
    "DifferentialPicksResponse",
    "RosterPickResponse",
    "RosterResponse",
    "TransferRecommendationsResponse",
]
