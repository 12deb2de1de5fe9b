"""Database connection management using asyncpg."""

import logging

import asyncpg

from app.config import get_settings

logger = logging.getLogger(__name__)

# Global connection pool
_pool: asyncpg.Pool | None = None


async def init_pool() -> asyncpg.Pool:
    """Initialize the recommendation store connection pool.

    Raises:
        ValueError: If DATABASE_URL is not set
    """
    global _pool
    if _pool is not None:
        return _pool

    dsn = get_settings().db_connection_string
    if not dsn:
        raise ValueError("Database connection string not configured. Set DATABASE_URL.")

    logger.info("Initializing database connection pool")
    _pool = await asyncpg.create_pool(
        dsn,
        min_size=1,
        max_size=10,
        command_timeout=30,
    )
    return _pool


async def close_pool() -> None:
    """Close the database connection pool."""
    global _pool
    if _pool is not None:
        logger.info("Closing database connection pool")
        await _pool.close()
        _pool = None


def get_pool() -> asyncpg.Pool:
    """Get the current connection pool.

    Raises:
        RuntimeError: If init_pool() has not succeeded
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return _pool

