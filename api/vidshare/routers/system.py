"""System endpoints (health, config)."""

from __future__ import annotations

import logging
import time
from typing import get_args

import redis
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from .. import schemas, settings
from ..cache import get_redis_client

router = APIRouter(prefix="", tags=["System"])
logger = logging.getLogger(__name__)

# Global startup time for uptime calculation
_STARTUP_TIME = time.time()


@router.get("/health", response_model=schemas.HealthResponse)
def get_health() -> schemas.HealthResponse:
    """Liveness check."""
    return schemas.HealthResponse(status="ok", uptime_s=time.time() - _STARTUP_TIME)


@router.get("/config", response_model=schemas.ConfigResponse)
def get_public_config() -> schemas.ConfigResponse:
    """Public configuration limits for the client."""
    return schemas.ConfigResponse(
        video_upload_size_limit_bytes=settings.VIDEO_UPLOAD_SIZE_LIMIT_BYTES,
        image_upload_size_limit_bytes=settings.IMAGE_UPLOAD_SIZE_LIMIT_BYTES,
        categories=schemas.VIDEO_CATEGORIES,
        visibilities=list(get_args(schemas.Visibility)),
    )


@router.get("/health/redis")
def check_redis_health():
    """
    Redis health check endpoint.

    Returns 200 if Redis is available, 503 if not.
    """
    client = get_redis_client()
    if not client:
        return JSONResponse(status_code=503, content={"status": "unavailable", "message": "Redis unavailable"})

    try:
        client.ping()
    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "message": "Redis error"})
    return {"status": "ok", "message": "Redis is available"}
