from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models, settings
from .deps import get_db
from .errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
oauth2_scheme = HTTPBearer(auto_error=False)

# JWT Configuration
JWT_SECRET_KEY = settings.JWT_SECRET_KEY
if not JWT_SECRET_KEY:
    raise RuntimeError(
        "JWT_SECRET_KEY environment variable is required but not set. "
        "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
    )
# 256 bits minimum; this checks length, not entropy
if len(JWT_SECRET_KEY) < 32:
    raise RuntimeError(
        "JWT_SECRET_KEY is too short. Must be at least 32 characters long."
    )
JWT_ALGORITHM = settings.JWT_ALGORITHM


def access_token_lifetime_seconds() -> int:
    return settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60


def create_access_token(user: models.User, expires_in_seconds: int | None = None) -> str:
    """
    Create a JWT access token for a user.

    The token carries a snapshot of the profile fields clients render without a
    round trip. It goes stale when the profile changes, which is why profile
    edits and channel activation hand out a fresh one.
    """
    if expires_in_seconds is None:
        expires_in_seconds = access_token_lifetime_seconds()

    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user.id,
        "username": user.username,
        "avatar_url": user.avatar_url,
        "is_creator": bool(user.is_creator),
        "is_admin": bool(user.is_admin),
        "exp": now + timedelta(seconds=expires_in_seconds),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """Verify ``token`` and return the user id it was issued for."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token")

    if payload.get("type") != "access":
        raise Unauthenticated("Invalid token type")

    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        raise Unauthenticated("Invalid token: missing user_id")
    return user_id


def authenticate_token(db: Session, token: str | None) -> models.User | None:
    """Resolve a raw token (e.g. a WebSocket query param) to a user, or None."""
    if not token:
        return None
    try:
        user_id = decode_access_token(token)
    except Unauthenticated:
        return None
    return db.get(models.User, user_id)


def _session_user(request: Request, db: Session) -> models.User | None:
    # SessionMiddleware populates scope["session"]; absent in bare test apps
    if "session" not in request.scope:
        return None
    user_id = request.session.get("user_id")
    if user_id is None:
        return None
    user = db.get(models.User, user_id)
    if user is None:
        # Account deleted while the cookie was alive
        request.session.pop("user_id", None)
    return user


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Get the current user from the login session, falling back to the Bearer token.

    The row is always loaded fresh, so role flags reflect the database rather
    than whatever the token snapshot says.
    """
    user = _session_user(request, db)
    if user is not None:
        return user

    if not credentials:
        raise Unauthenticated()

    user_id = decode_access_token(credentials.credentials)
    user = db.get(models.User, user_id)
    if user is None:
        raise Unauthenticated("User not found")
    return user


async def get_current_user_optional(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.User | None:
    """
    Get current user if authenticated, None otherwise.

    Used for endpoints that work differently for authenticated vs anonymous users.
    """
    try:
        return await get_current_user(request, credentials, db)
    except Unauthenticated:
        return None


# ============================================================================
# AUTHORIZATION
# ============================================================================


CAPABILITIES: dict[str, tuple[Callable[[models.User], bool], str]] = {
    "admin": (lambda user: bool(user.is_admin), "Admin access required"),
    "creator": (
        lambda user: bool(user.is_creator),
        "Creator channel required. Activate your channel first",
    ),
}


def require_capabilities(*names: str):
    """
    Build a dependency that requires every named capability of the current user.

    Usage: ``Depends(require_capabilities("creator"))``.
    """
    unknown = [name for name in names if name not in CAPABILITIES]
    if unknown:
        raise ValueError(f"Unknown capabilities: {', '.join(unknown)}")

    async def dependency(user: models.User = Depends(get_current_user)) -> models.User:
        for name in names:
            predicate, message = CAPABILITIES[name]
            if not predicate(user):
                logger.info(f"User {user.id} denied: missing capability {name}")
                raise Forbidden(message)
        return user

    return dependency


def ensure_owner(resource_user_id: int, user: models.User) -> None:
    """
    Require that ``user`` owns a resource.

    Call this only after the resource has been found, so a missing resource
    reports 404 rather than 403.
    """
    if resource_user_id != user.id:
        raise Forbidden()
