"""Mapping of FPL API failures to HTTP errors."""

import httpx
from fastapi import HTTPException
from tenacity import RetryError


def upstream_http_error(exc: Exception) -> HTTPException | None:
    """Map an FPL API failure to an HTTP error, or None if it is not one.

    Retries exhausted by the client surface as RetryError; the last attempt's
    exception decides the status.

    - 429 -> 429 (rate limit)
    - Other HTTP status errors -> 502
    - Timeouts -> 504
    """
    if isinstance(exc, RetryError):
        inner = exc.last_attempt.exception()
        if isinstance(inner, Exception):
            exc = inner

    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code == 429:
            return HTTPException(status_code=429, detail="FPL API rate limit exceeded")
        return HTTPException(status_code=502, detail="FPL API unavailable")
    if isinstance(exc, httpx.TimeoutException):
        return HTTPException(status_code=504, detail="FPL API request timed out")
    return None
