"""FPL API client with rate limiting and retries.

Supplies the candidate source (bootstrap-static elements), the fixture source
and the roster source (manager picks) for recommendations.
"""

import asyncio
import logging
import time
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.services.fpl_cache import get_cached_bootstrap, get_cached_fixtures

logger = logging.getLogger(__name__)

FPL_BASE_URL = "https://fantasy.premierleague.com/api"

# HTTP status codes that should trigger a retry
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _is_retryable_error(exception: BaseException) -> bool:
    """Check if an error should trigger a retry."""
    if isinstance(exception, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in RETRYABLE_STATUS_CODES
    return False


def current_gameweek_from_events(events: list[dict[str, Any]]) -> int:
    """Resolve the current gameweek from bootstrap events.

    Fallback chain: event flagged is_current -> first unfinished event -> 1
    """
    for event in events:
        if event.get("is_current") and event.get("id") is not None:
            return event["id"]

    for event in events:
        if not event.get("finished") and event.get("id") is not None:
            return event["id"]

    return 1


class FplApiClient:
    """
    FPL API client with rate limiting.

    The FPL API doesn't officially document rate limits, but empirically:
    - ~60 requests/minute is safe
    - 503s happen if you go too fast
    """

    def __init__(
        self,
        requests_per_second: float = 1.0,
        max_concurrent: int = 5,
        base_url: str = FPL_BASE_URL,
    ):
        """
        Initialize the client.

        Args:
            requests_per_second: Target rate (1.0 = 1 request/sec)
            max_concurrent: Maximum concurrent requests
            base_url: FPL API root, without trailing slash
        """
        self.base_url = base_url.rstrip("/")
        self.delay = 1.0 / requests_per_second
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization, coroutine-safe)."""
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(timeout=30.0)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources (coroutine-safe)."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self) -> "FplApiClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def _rate_limit(self) -> None:
        """Apply rate limiting between requests."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self.delay:
                await asyncio.sleep(self.delay - elapsed)
            self._last_request_time = time.monotonic()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception(_is_retryable_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    async def _get(self, url: str) -> Any:
        """Make a rate-limited GET request with retries."""
        async with self.semaphore:
            await self._rate_limit()

            client = await self._get_client()
            response = await client.get(url)
            response.raise_for_status()
            return response.json()

    async def get_bootstrap_static(self) -> dict[str, Any]:
        """
        Fetch bootstrap-static data (elements, teams, events).

        Served from the shared cache when fresh.
        """
        return await get_cached_bootstrap(self._get, f"{self.base_url}/bootstrap-static/")

    async def get_fixtures(self) -> list[dict[str, Any]]:
        """Fetch all fixtures for the current season (cached)."""
        return await get_cached_fixtures(self._get, f"{self.base_url}/fixtures/")

    async def get_manager_picks(
        self, manager_id: int, gameweek: int
    ) -> dict[str, Any]:
        """
        Fetch a manager's picks for a gameweek.

        Args:
            manager_id: FPL manager ID
            gameweek: Gameweek to fetch

        Returns:
            Dict with picks list, active_chip and entry_history

        Raises:
            httpx.HTTPStatusError: 404 for an unknown manager (not retried)
        """
        return await self._get(f"{self.base_url}/entry/{manager_id}/event/{gameweek}/picks/")
