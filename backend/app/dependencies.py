"""Shared FastAPI dependencies for API routes."""

from fastapi import Depends, HTTPException

from app.db import get_pool
from app.services.recommendation_store import RecommendationStore

_store: RecommendationStore | None = None


def require_db() -> None:
    """Fail with 503 unless the recommendation store pool is up.

    Routes normally reach this through get_recommendation_store.
    """
    try:
        get_pool()
    except RuntimeError as e:
        raise HTTPException(
            status_code=503,
            detail="Database not available. This feature requires database connection.",
        ) from e


def get_recommendation_store(_: None = Depends(require_db)) -> RecommendationStore:
    """FastAPI dependency providing the recommendation store (503 without a database).

    One store is kept per pool so its resolved player columns survive
    across requests.
    """
    global _store
    pool = get_pool()
    if _store is None or _store.pool is not pool:
        _store = RecommendationStore(pool)
    return _store
