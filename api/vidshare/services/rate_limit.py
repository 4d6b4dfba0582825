"""Rate limiting service using Redis."""

from __future__ import annotations

import logging

import redis
from fastapi import Request

from .. import settings
from ..cache import get_redis_client
from ..errors import RateLimited

logger = logging.getLogger(__name__)


def check_rate_limit(key: str, limit: int, window_seconds: int = 60) -> tuple[bool, int]:
    """
    Check and increment rate limit counter.

    Uses Redis INCR with EXPIRE for fixed window rate limiting.

    Returns:
        Tuple of (allowed, remaining). Without Redis every request is allowed.
    """
    client = get_redis_client()

    # If Redis is unavailable, allow the request (fail open)
    if not client:
        return True, limit

    try:
        current = client.get(key)
        count = int(current) if current else 0

        if count >= limit:
            return False, 0

        pipe = client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        results = pipe.execute()

        return True, max(0, limit - results[0])

    except redis.RedisError as e:
        logger.error(f"Rate limit check error for key '{key}': {e}")
        return True, limit


def client_ip(request: Request) -> str:
    """
    The caller's address for rate limiting.

    X-Forwarded-For is only honoured when the direct peer is a configured
    trusted proxy.
    """
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in settings.TRUSTED_PROXIES:
        return forwarded.split(",")[0].strip()
    return peer


def enforce_ip_rate_limit(request: Request, action: str, limit: int) -> None:
    """Raise :class:`RateLimited` when the caller's IP exceeded ``limit`` per minute."""
    ip = client_ip(request)
    allowed, _ = check_rate_limit(f"ratelimit:{action}:{ip}", limit, window_seconds=60)
    if not allowed:
        logger.warning(f"Rate limit exceeded for {action} from {ip}")
        raise RateLimited()
