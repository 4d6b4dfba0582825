"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _list_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

# Database. DATABASE_URL wins; otherwise the URL is composed from DB_* parts.
DATABASE_URL: str | None = os.getenv("DATABASE_URL") or None

# JWT configuration
JWT_SECRET_KEY: str | None = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = _int_env("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 60)

# Server-side session cookie (set by the GitHub login flow)
SESSION_SECRET: str | None = os.getenv("SESSION_SECRET") or JWT_SECRET_KEY
SESSION_MAX_AGE_SECONDS: int = _int_env("SESSION_MAX_AGE_SECONDS", 24 * 60 * 60)

# GitHub OAuth
GITHUB_CLIENT_ID: str | None = os.getenv("GITHUB_OAUTH_CLIENT_ID")
GITHUB_CLIENT_SECRET: str | None = os.getenv("GITHUB_OAUTH_CLIENT_SECRET")
GITHUB_REDIRECT_URI: str = os.getenv(
    "GITHUB_REDIRECT_URI", "http://localhost:3000/api/auth/github/callback"
)
FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3001")

# External media host (Cloudinary-compatible upload API)
MEDIA_HOST_URL: str = os.getenv("MEDIA_HOST_URL", "https://api.cloudinary.com")
MEDIA_HOST_CLOUD_NAME: str | None = os.getenv("MEDIA_HOST_CLOUD_NAME")
MEDIA_HOST_API_KEY: str | None = os.getenv("MEDIA_HOST_API_KEY")
MEDIA_HOST_API_SECRET: str | None = os.getenv("MEDIA_HOST_API_SECRET")
MEDIA_HOST_TIMEOUT_SECONDS: int = _int_env("MEDIA_HOST_TIMEOUT_SECONDS", 120)

# Global maximum size for a single video upload (bytes).
# Configured via .env: VIDEO_UPLOAD_SIZE_LIMIT=524288000  (500 MiB)
VIDEO_UPLOAD_SIZE_LIMIT_BYTES: int = _int_env("VIDEO_UPLOAD_SIZE_LIMIT", 500 * 1024 * 1024)
IMAGE_UPLOAD_SIZE_LIMIT_BYTES: int = _int_env("IMAGE_UPLOAD_SIZE_LIMIT", 5 * 1024 * 1024)

# Local files served by the range-streaming endpoint
VIDEO_STORAGE_DIR: str = os.getenv("VIDEO_STORAGE_DIR", "./videos")

# Redis. An explicitly empty REDIS_URL disables Redis entirely.
REDIS_URL: str = os.getenv("REDIS_URL", "redis://cache:6379/0")
CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://cache:6379/0")
CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)

# The first N accounts ever registered are administrators.
ADMIN_BOOTSTRAP_COUNT: int = _int_env("ADMIN_BOOTSTRAP_COUNT", 5)

# Per-IP limits for credential endpoints (requests per minute)
LOGIN_RATE_LIMIT_PER_MINUTE: int = _int_env("LOGIN_RATE_LIMIT_PER_MINUTE", 10)
REGISTER_RATE_LIMIT_PER_MINUTE: int = _int_env("REGISTER_RATE_LIMIT_PER_MINUTE", 5)

# Peers whose X-Forwarded-For header is believed (reverse proxies). Empty: none.
TRUSTED_PROXIES: list[str] = _list_env("TRUSTED_PROXIES", "")

CORS_ORIGINS: list[str] = _list_env("CORS_ORIGINS", "http://localhost:3001,http://127.0.0.1:3001")
