"""Service layer for business logic."""

from app.services.fpl_client import FplApiClient
from app.services.recommendation_service import RecommendationsService
from app.services.recommendation_store import RecommendationStore

__all__ = ["FplApiClient", "RecommendationStore", "RecommendationsService"]
