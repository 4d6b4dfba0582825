"""Username validation and generation utilities."""

from __future__ import annotations

import re

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import User

USERNAME_MAX_LENGTH = 50

# Same alphabet as @mentions, so every username is mentionable
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
_INVALID_CHARS_RE = re.compile(r"[^A-Za-z0-9_]")


def validate_username(username: str, max_length: int = USERNAME_MAX_LENGTH) -> tuple[bool, str | None]:
    """
    Validate a username format and return (is_valid, error_message).
    """
    if not username:
        return False, "Username cannot be empty"

    if len(username) > max_length:
        return False, f"Username must be at most {max_length} characters"

    if not _USERNAME_RE.match(username):
        return False, "Username can only contain letters, numbers, and underscores"

    return True, None


def is_username_taken(db: Session, username: str, exclude_user_id: int | None = None) -> bool:
    """Case-insensitive check, so 'Alice' and 'alice' cannot coexist."""
    query = select(User.id).where(func.lower(User.username) == username.lower())
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    return db.execute(query.limit(1)).first() is not None


def sanitize_username(raw: str) -> str:
    """Map an external login (e.g. a GitHub login with hyphens) onto the username alphabet."""
    cleaned = _INVALID_CHARS_RE.sub("_", raw or "").strip("_")
    return cleaned[:USERNAME_MAX_LENGTH] or "user"


def generate_unique_username(db: Session, base: str) -> str:
    """
    Return ``base`` if free, else ``base`` with the smallest numeric suffix that is.

    Example: ``octocat`` -> ``octocat1`` -> ``octocat2``.
    """
    base = sanitize_username(base)
    if not is_username_taken(db, base):
        return base

    suffix = 1
    while True:
        tail = str(suffix)
        candidate = base[: USERNAME_MAX_LENGTH - len(tail)] + tail
        if not is_username_taken(db, candidate):
            return candidate
        suffix += 1
