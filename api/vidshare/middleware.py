"""HTTP middleware: request logging and security headers."""

from __future__ import annotations

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from . import settings

logger = logging.getLogger(__name__)

# Too frequent to be worth a log line
QUIET_PATHS = {"/health", "/api/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        if request.url.path not in QUIET_PATHS and request.method != "OPTIONS":
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f} ms)",
            )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Implements OWASP recommended headers for a JSON API.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )

        if settings.ENVIRONMENT == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response
