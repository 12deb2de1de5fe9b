"""Tests for FPL API client with mocked HTTP responses."""

import httpx
import pytest
import respx
from httpx import Response
from tenacity import RetryError

from app.services.fpl_client import FplApiClient, current_gameweek_from_events

BOOTSTRAP_URL = "https://fantasy.premierleague.com/api/bootstrap-static/"
FIXTURES_URL = "https://fantasy.premierleague.com/api/fixtures/"


@pytest.fixture
def fpl_client():
    """Create FPL client for testing."""
    # Fast rate for tests (no waiting)
    return FplApiClient(requests_per_second=100.0, max_concurrent=10)


class TestCurrentGameweekFromEvents:
    """Tests for the current gameweek fallback chain."""

    def test_prefers_is_current(self):
        events = [
            {"id": 1, "is_current": False, "finished": True},
            {"id": 18, "is_current": True, "finished": False},
            {"id": 19, "is_current": False, "finished": False},
        ]

        assert current_gameweek_from_events(events) == 18

    def test_first_unfinished_when_none_current(self):
        events = [
            {"id": 1, "is_current": False, "finished": True},
            {"id": 2, "is_current": False, "finished": False},
            {"id": 3, "is_current": False, "finished": False},
        ]

        assert current_gameweek_from_events(events) == 2

    def test_defaults_to_one(self):
        assert current_gameweek_from_events([]) == 1
        assert current_gameweek_from_events([{"id": 38, "finished": True}]) == 1


class TestFplClientBootstrap:
    """Tests for bootstrap-static endpoint."""

    @respx.mock
    async def test_get_bootstrap_returns_data(self, fpl_client: FplApiClient):
        """Should return raw bootstrap data."""
        respx.get(BOOTSTRAP_URL).mock(
            return_value=Response(
                200,
                json={
                    "elements": [
                        {"id": 1, "web_name": "Salah"},
                        {"id": 2, "web_name": "Haaland"},
                    ],
                    "teams": [{"id": 12, "name": "Liverpool", "short_name": "LIV"}],
                    "events": [
                        {"id": 17, "is_current": False},
                        {"id": 18, "is_current": True},
                    ],
                },
            )
        )

        result = await fpl_client.get_bootstrap_static()

        assert len(result["elements"]) == 2
        assert result["elements"][0]["web_name"] == "Salah"
        await fpl_client.close()

    @respx.mock
    async def test_bootstrap_served_from_cache(self, fpl_client: FplApiClient):
        """Second call should not hit the API."""
        route = respx.get(BOOTSTRAP_URL).mock(
            return_value=Response(200, json={"elements": [{"id": 1}], "events": []})
        )

        await fpl_client.get_bootstrap_static()
        await fpl_client.get_bootstrap_static()
        await fpl_client.close()

        assert route.call_count == 1

    @respx.mock
    async def test_custom_base_url(self):
        route = respx.get("https://fpl.example.com/api/fixtures/").mock(
            return_value=Response(200, json=[])
        )

        async with FplApiClient(requests_per_second=100.0, base_url="https://fpl.example.com/api/") as client:
            await client.get_fixtures()

        assert route.call_count == 1


class TestFplClientManagerPicks:
    """Tests for the manager picks endpoint."""

    @respx.mock
    async def test_get_manager_picks(self, fpl_client: FplApiClient):
        respx.get("https://fantasy.premierleague.com/api/entry/123/event/10/picks/").mock(
            return_value=Response(
                200,
                json={"picks": [{"element": 1, "position": 1}], "active_chip": None},
            )
        )

        result = await fpl_client.get_manager_picks(123, 10)
        await fpl_client.close()

        assert result["picks"][0]["element"] == 1

    async def test_picks_require_gameweek(self, fpl_client: FplApiClient):
        """Callers resolve the gameweek; the client never guesses it."""
        with pytest.raises(TypeError):
            await fpl_client.get_manager_picks(5)

    @respx.mock
    async def test_does_not_retry_on_404(self, fpl_client: FplApiClient):
        """Unknown managers fail fast."""
        route = respx.get("https://fantasy.premierleague.com/api/entry/999/event/1/picks/")
        route.mock(return_value=Response(404))

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await fpl_client.get_manager_picks(999, 1)

        await fpl_client.close()
        assert route.call_count == 1  # No retries
        assert exc_info.value.response.status_code == 404


class TestFplClientFixtures:
    """Tests for fixtures endpoint."""

    @respx.mock
    async def test_get_fixtures_returns_list(self, fpl_client: FplApiClient):
        respx.get(FIXTURES_URL).mock(
            return_value=Response(
                200,
                json=[
                    {"id": 1, "event": 1, "team_h": 1, "team_a": 2},
                    {"id": 2, "event": 1, "team_h": 3, "team_a": 4},
                ],
            )
        )

        result = await fpl_client.get_fixtures()
        await fpl_client.close()

        assert len(result) == 2
        assert result[0]["id"] == 1


class TestFplClientRetry:
    """Tests for retry behavior on transient errors."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    @respx.mock
    async def test_retries_on_transient_status(self, fpl_client: FplApiClient, status: int):
        route = respx.get(FIXTURES_URL)
        route.side_effect = [
            Response(status),
            Response(200, json=[{"id": 1}]),
        ]

        result = await fpl_client.get_fixtures()
        await fpl_client.close()

        assert route.call_count == 2
        assert len(result) == 1

    @respx.mock
    async def test_retries_on_timeout(self, fpl_client: FplApiClient):
        route = respx.get(FIXTURES_URL)
        route.side_effect = [
            httpx.TimeoutException("Connection timed out"),
            Response(200, json=[{"id": 1}]),
        ]

        result = await fpl_client.get_fixtures()
        await fpl_client.close()

        assert route.call_count == 2
        assert len(result) == 1

    @respx.mock
    async def test_retries_on_network_error(self, fpl_client: FplApiClient):
        route = respx.get(FIXTURES_URL)
        route.side_effect = [
            httpx.NetworkError("Connection reset"),
            Response(200, json=[{"id": 1}]),
        ]

        result = await fpl_client.get_fixtures()
        await fpl_client.close()

        assert route.call_count == 2


class TestFplClientResourceManagement:
    """Tests for HTTP client lifecycle."""

    @respx.mock
    async def test_client_reused_across_calls(self, fpl_client: FplApiClient):
        """Should reuse the same HTTP client for multiple requests."""
        respx.get("https://fantasy.premierleague.com/api/entry/1/event/1/picks/").mock(
            return_value=Response(200, json={"picks": []})
        )

        await fpl_client.get_manager_picks(1, 1)
        client_after_first = fpl_client._client

        await fpl_client.get_manager_picks(1, 1)
        client_after_second = fpl_client._client

        await fpl_client.close()

        assert client_after_first is client_after_second
        assert client_after_first is not None

    async def test_close_handles_no_client(self, fpl_client: FplApiClient):
        """Should not error when closing before any requests."""
        await fpl_client.close()

        assert fpl_client._client is None

    @respx.mock
    async def test_async_context_manager(self):
        """Should support async with statement for automatic cleanup."""
        respx.get(FIXTURES_URL).mock(return_value=Response(200, json=[{"id": 1}]))

        async with FplApiClient(requests_per_second=100.0) as client:
            result = await client.get_fixtures()
            assert len(result) == 1

        assert client._client is None


class TestFplClientRetryExhaustion:
    """Tests for retry exhaustion behavior."""

    @respx.mock
    async def test_raises_after_retries_exhausted(self, fpl_client: FplApiClient):
        """Should raise RetryError after 3 failed attempts."""
        route = respx.get(FIXTURES_URL)
        route.side_effect = [Response(503), Response(503), Response(503)]

        with pytest.raises(RetryError):
            await fpl_client.get_fixtures()

        await fpl_client.close()
        assert route.call_count == 3

    @pytest.mark.parametrize("status", [400, 401])
    @respx.mock
    async def test_does_not_retry_on_client_errors(self, fpl_client: FplApiClient, status: int):
        route = respx.get(FIXTURES_URL)
        route.mock(return_value=Response(status))

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await fpl_client.get_fixtures()

        await fpl_client.close()
        assert route.call_count == 1  # No retries
        assert exc_info.value.response.status_code == status
