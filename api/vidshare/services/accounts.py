"""Account lifecycle: registration, credential checks, GitHub linking, profile edits."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any

from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import access_token_lifetime_seconds, create_access_token
from ..errors import Conflict, Unauthenticated, ValidationError
from ..utils.usernames import generate_unique_username, is_username_taken, validate_username
from .github import GitHubProfile

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

GENDERS = {"male", "female", "other", "prefer_not_to_say"}
MAX_LINKS = 10


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def serialize_private(user: models.User) -> schemas.UserPrivate:
    out = schemas.UserPrivate.model_validate(user)
    out.links = user.links or []
    out.has_password = user.password_hash is not None
    out.github_linked = user.github_id is not None
    return out


def token_response(user: models.User) -> schemas.TokenResponse:
    """Issue a fresh token reflecting the user's current profile."""
    return schemas.TokenResponse(
        token=create_access_token(user),
        expires_in=access_token_lifetime_seconds(),
        user=serialize_private(user),
    )


def _user_count(db: Session) -> int:
    return db.scalar(select(func.count(models.User.id))) or 0


def _email_taken(db: Session, email: str) -> bool:
    return db.scalar(select(models.User.id).where(models.User.email == email)) is not None


def register(db: Session, payload: schemas.RegisterRequest) -> models.User:
    """
    Create a local account.

    The first ``ADMIN_BOOTSTRAP_COUNT`` accounts ever created are administrators.
    """
    username = payload.username.strip()
    valid, error = validate_username(username)
    if not valid:
        raise ValidationError(error)

    if _email_taken(db, payload.email):
        raise Conflict("An account with this email already exists")
    if is_username_taken(db, username):
        raise Conflict("Username is already taken")

    user = models.User(
        username=username,
        email=payload.email,
        password_hash=hash_password(payload.password),
        is_admin=_user_count(db) < settings.ADMIN_BOOTSTRAP_COUNT,
        links=[],
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email/username
        db.rollback()
        raise Conflict("An account with this email or username already exists")
    db.refresh(user)
    logger.info(f"Registered user {user.id} ({user.username}), admin={user.is_admin}")
    return user


def authenticate(db: Session, email: str, password: str) -> models.User:
    user = db.scalar(select(models.User).where(models.User.email == email.strip().lower()))
    # Accounts created through GitHub have no password and cannot log in here
    if user is None or user.password_hash is None or not verify_password(password, user.password_hash):
        raise Unauthenticated("Invalid email or password")
    return user


def link_github_account(db: Session, profile: GitHubProfile) -> models.User:
    """
    Find or create the local account for a GitHub identity.

    Lookup order: by GitHub id, then by email (linking the GitHub id to the
    existing account), else a new password-less account whose username is the
    GitHub login, suffixed with a number when taken.
    """
    user = db.scalar(select(models.User).where(models.User.github_id == profile.github_id))
    if user is not None:
        if profile.avatar_url and not user.avatar_url:
            user.avatar_url = profile.avatar_url
            db.commit()
        return user

    user = db.scalar(select(models.User).where(models.User.email == profile.email))
    if user is not None:
        if user.github_id is not None:
            raise Conflict("This email belongs to an account linked to another GitHub user")
        user.github_id = profile.github_id
        if not user.avatar_url:
            user.avatar_url = profile.avatar_url
        db.commit()
        logger.info(f"Linked GitHub account {profile.login} to user {user.id}")
        return user

    user = models.User(
        username=generate_unique_username(db, profile.login),
        email=profile.email,
        github_id=profile.github_id,
        avatar_url=profile.avatar_url,
        display_name=profile.name[:50] if profile.name else None,
        is_admin=_user_count(db) < settings.ADMIN_BOOTSTRAP_COUNT,
        links=[],
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Could not create an account for this GitHub identity")
    db.refresh(user)
    logger.info(f"Created user {user.id} ({user.username}) from GitHub login {profile.login}")
    return user


def parse_links(raw: str | None) -> list[Any] | None:
    """Links arrive as a JSON array inside a multipart form field."""
    if raw is None:
        return None
    try:
        links = json.loads(raw)
    except ValueError:
        raise ValidationError("links must be a JSON array")
    if not isinstance(links, list):
        raise ValidationError("links must be a JSON array")
    if len(links) > MAX_LINKS:
        raise ValidationError(f"At most {MAX_LINKS} links are allowed")
    return links


def update_profile(
    db: Session,
    user: models.User,
    *,
    username: str | None = None,
    display_name: str | None = None,
    description: str | None = None,
    links: list[Any] | None = None,
    gender: str | None = None,
    dob: date | None = None,
    avatar_url: str | None = None,
    banner_url: str | None = None,
) -> models.User:
    """Apply the provided fields; ``None`` leaves a field unchanged."""
    if username is not None and username != user.username:
        username = username.strip()
        valid, error = validate_username(username)
        if not valid:
            raise ValidationError(error)
        if is_username_taken(db, username, exclude_user_id=user.id):
            raise Conflict("Username is already taken")
        user.username = username

    if display_name is not None:
        if len(display_name) > 50:
            raise ValidationError("Display name must be at most 50 characters")
        user.display_name = display_name or None
    if description is not None:
        user.description = description or None
    if links is not None:
        user.links = links
    if gender is not None:
        if gender and gender not in GENDERS:
            raise ValidationError(f"gender must be one of: {', '.join(sorted(GENDERS))}")
        user.gender = gender or None
    if dob is not None:
        if dob > date.today():
            raise ValidationError("Date of birth cannot be in the future")
        user.dob = dob
    if avatar_url is not None:
        user.avatar_url = avatar_url
    if banner_url is not None:
        user.banner_url = banner_url

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Username is already taken")
    db.refresh(user)
    logger.info(f"User {user.id} updated their profile")
    return user


def activate_channel(db: Session, user: models.User) -> models.User:
    if not user.is_creator:
        user.is_creator = True
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} activated their channel")
    return user
