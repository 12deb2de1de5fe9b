"""Shared caches for FPL source data.

bootstrap-static (~1.8MB, players/teams/events) and the season fixture list
feed every recommendation request but change rarely within a gameweek. Each is
held in its own single-entry TTLCache so concurrent requests share one parsed
copy, and an asyncio.Lock per cache prevents a thundering herd on expiry.

TTLs come from Settings.cache_ttl_bootstrap and Settings.cache_ttl_fixtures.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache

from app.config import get_settings

logger = logging.getLogger(__name__)

BOOTSTRAP_KEY = "bootstrap"
FIXTURES_KEY = "fixtures"

_settings = get_settings()

_caches: dict[str, TTLCache[str, Any]] = {
    BOOTSTRAP_KEY: TTLCache(maxsize=1, ttl=_settings.cache_ttl_bootstrap),
    FIXTURES_KEY: TTLCache(maxsize=1, ttl=_settings.cache_ttl_fixtures),
}

# FastAPI runs a single event loop, so module-level locks are safe here.
_locks: dict[str, asyncio.Lock] = {key: asyncio.Lock() for key in _caches}

Fetcher = Callable[[str], Awaitable[Any]]


def _is_valid_bootstrap(data: Any) -> bool:
    return isinstance(data, dict) and bool(data.get("elements"))


def _is_valid_fixtures(data: Any) -> bool:
    return isinstance(data, list)


async def _get_cached(
    key: str,
    url: str,
    fetcher: Fetcher,
    is_valid: Callable[[Any], bool],
) -> Any:
    cache = _caches[key]

    # TTLCache.get() returns None for expired entries
    cached = cache.get(key)
    if cached is not None:
        logger.debug(f"{key} cache hit")
        return cached

    async with _locks[key]:
        cached = cache.get(key)
        if cached is not None:
            logger.debug(f"{key} cache hit (after lock)")
            return cached

        logger.info(f"Fetching {key} from FPL API (cache miss)")
        start = time.monotonic()
        try:
            data = await fetcher(url)
        except Exception as e:
            logger.error(f"Failed to fetch {key}: {type(e).__name__}: {e}")
            raise

        if not is_valid(data):
            logger.error(
                f"Invalid {key} response, not caching. Sample: {str(data)[:200]}. "
                "API may be under maintenance or rate-limiting."
            )
            return data

        cache[key] = data
        logger.info(f"Cached {key} in {time.monotonic() - start:.2f}s")
        return data


async def get_cached_bootstrap(fetcher: Fetcher, url: str) -> dict[str, Any]:
    """Get bootstrap-static data from cache or fetch it.

    Responses without player elements are returned but not cached.

    Args:
        fetcher: Async function taking a URL and returning parsed JSON
        url: bootstrap-static URL

    Raises:
        httpx.HTTPError: If the fetch fails
    """
    return await _get_cached(BOOTSTRAP_KEY, url, fetcher, _is_valid_bootstrap)


async def get_cached_fixtures(fetcher: Fetcher, url: str) -> list[dict[str, Any]]:
    """Get the season fixture list from cache or fetch it."""
    return await _get_cached(FIXTURES_KEY, url, fetcher, _is_valid_fixtures)


def clear_cache() -> None:
    """Clear all FPL caches. Used by tests to ensure isolation."""
    for cache in _caches.values():
        cache.clear()
