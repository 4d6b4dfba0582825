"""Shared Redis client.

Redis is optional: when ``REDIS_URL`` is empty or the server is unreachable,
callers get ``None`` and degrade (local-only fan-out, fail-open rate limits).
"""

from __future__ import annotations

import logging

import redis

from . import settings

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None if Redis is disabled or the connection fails.
    """
    global _redis_client

    if not settings.REDIS_URL:
        return None

    if _redis_client is not None:
        return _redis_client

    try:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable: {e}. Continuing without Redis.")
        return None

    logger.info("Redis connected successfully")
    _redis_client = client
    return _redis_client
