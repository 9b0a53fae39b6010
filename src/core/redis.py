"""Redis client lifecycle for order storage."""

import logging
from typing import Any

import redis.asyncio as redis

from src.core.config import get_settings

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def create_redis_client() -> redis.Redis:
    """Create a Redis client backed by its own connection pool.

    Responses are decoded to str so stored order documents come back
    as JSON text.

    Returns:
        redis.Redis: Client configured from application settings.
    """
    settings = get_settings()
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_connect_timeout,
    )


async def init_redis_client() -> redis.Redis:
    """Create the shared Redis client used by request handlers.

    Called once from the application lifespan. Connections are opened
    lazily by the pool on first command.

    Returns:
        redis.Redis: The shared client.
    """
    global _redis_client
    if _redis_client is None:
        logger.info("Creating Redis connection pool for %s", get_settings().redis_url)
        _redis_client = create_redis_client()
    return _redis_client


async def shutdown_redis_client() -> None:
    """Close the shared Redis client and its connection pool."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection pool closed")


def get_redis_client() -> redis.Redis:
    """Get the shared Redis client.

    Falls back to creating one when the application lifespan has not
    run (scripts, ad-hoc use).

    Returns:
        redis.Redis: The shared client.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = create_redis_client()
    return _redis_client


async def check_redis_connection() -> dict[str, Any]:
    """Check if the Redis connection is healthy.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        await get_redis_client().ping()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
