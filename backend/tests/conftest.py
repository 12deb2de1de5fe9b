"""Shared pytest fixtures for backend tests."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.services.fpl_cache import clear_cache


@pytest.fixture(autouse=True)
def _clear_fpl_cache():
    """Keep bootstrap/fixtures cache entries from leaking between tests."""
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
async def async_client():
    """Async HTTP client for testing the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_pool():
    """Mock DB pool check for require_db() dependency (503 check)."""
    with patch("app.dependencies.get_pool") as mock:
        mock.return_value = MagicMock()
        yield mock


@pytest.fixture
def mock_conn():
    """Mock asyncpg connection behind a pool whose acquire() is an async context manager."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchval = AsyncMock(return_value=None)

    acquire = MagicMock()
    acquire.__aenter__ = AsyncMock(return_value=conn)
    acquire.__aexit__ = AsyncMock(return_value=None)

    pool = MagicMock()
    pool.acquire.return_value = acquire
    conn.pool = pool
    return conn


# =============================================================================
# FPL data builders
# =============================================================================


def make_player(
    player_id: int,
    element_type: int,
    team: int,
    form: str | None = "5.0",
    status: str = "a",
    **extra: Any,
) -> dict[str, Any]:
    """bootstrap-static element with the fields the engine reads."""
    player = {
        "id": player_id,
        "web_name": f"Player{player_id}",
        "first_name": "First",
        "second_name": f"Player{player_id}",
        "element_type": element_type,
        "team": team,
        "form": form,
        "status": status,
        "now_cost": 50,
        "points_per_game": "4.0",
        "total_points": 60,
        "selected_by_percent": "5.0",
        "minutes": 900,
    }
    player.update(extra)
    return player


def make_fixture(
    event: int | None,
    team_h: int,
    team_a: int,
    team_h_difficulty: int | None = 3,
    team_a_difficulty: int | None = 3,
    finished: bool = False,
    fixture_id: int | None = None,
) -> dict[str, Any]:
    """Fixture from the FPL fixtures endpoint."""
    return {
        "id": fixture_id,
        "event": event,
        "team_h": team_h,
        "team_a": team_a,
        "team_h_difficulty": team_h_difficulty,
        "team_a_difficulty": team_a_difficulty,
        "team_h_score": None,
        "team_a_score": None,
        "finished": finished,
    }


def make_teams(count: int = 20) -> list[dict[str, Any]]:
    return [
        {"id": i, "name": f"Team {i}", "short_name": f"T{i:02d}", "strength": 3}
        for i in range(1, count + 1)
    ]
