"""User profile and watch-edge endpoints."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import get_current_user, get_current_user_optional
from ..deps import get_db, get_media_host
from ..errors import NotFound, ValidationError
from ..services import accounts, watchers
from ..services import videos as video_service
from ..services.media_host import MediaHostClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

ALLOWED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}


def _read_image(upload: UploadFile, field: str) -> bytes:
    if upload.content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(f"{field} must be a PNG, JPEG, WebP or GIF image")
    limit = settings.IMAGE_UPLOAD_SIZE_LIMIT_BYTES
    content = upload.file.read(limit + 1)
    if not content:
        raise ValidationError(f"{field} is empty")
    if len(content) > limit:
        raise ValidationError(f"{field} exceeds the {limit // (1024 * 1024)} MiB limit")
    return content


# Static paths first so they are not captured by /{username}


@router.put("/profile", response_model=schemas.TokenResponse)
def update_profile(
    username: str | None = Form(None, max_length=50),
    display_name: str | None = Form(None),
    description: str | None = Form(None, max_length=5000),
    links: str | None = Form(None),
    gender: str | None = Form(None),
    dob: date | None = Form(None),
    avatar: UploadFile | None = File(None),
    banner: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    media_host: MediaHostClient = Depends(get_media_host),
) -> schemas.TokenResponse:
    """
    Edit the caller's profile.

    Images go to the media host. The response carries a reissued token, since
    the old one still holds the previous username and avatar.
    """
    parsed_links = accounts.parse_links(links)

    avatar_url = None
    if avatar is not None:
        content = _read_image(avatar, "avatar")
        avatar_url = media_host.upload_image(content, avatar.filename or "avatar", folder="avatars").url
    banner_url = None
    if banner is not None:
        content = _read_image(banner, "banner")
        banner_url = media_host.upload_image(content, banner.filename or "banner", folder="banners").url

    user = accounts.update_profile(
        db,
        current_user,
        username=username,
        display_name=display_name,
        description=description,
        links=parsed_links,
        gender=gender,
        dob=dob,
        avatar_url=avatar_url,
        banner_url=banner_url,
    )
    return accounts.token_response(user)


@router.post("/activate-channel", response_model=schemas.TokenResponse)
def activate_channel(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.TokenResponse:
    """Turn the caller into a creator; returns a token carrying the new flag."""
    user = accounts.activate_channel(db, current_user)
    return accounts.token_response(user)


@router.post("/{user_id}/watch", response_model=schemas.WatchResult)
def watch_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.WatchResult:
    watchers.watch(db, current_user.id, user_id)
    return schemas.WatchResult(
        watched_id=user_id, is_watching=True, watcher_count=watchers.watcher_count(db, user_id)
    )


@router.delete("/{user_id}/unwatch", response_model=schemas.WatchResult)
def unwatch_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.WatchResult:
    watchers.unwatch(db, current_user.id, user_id)
    return schemas.WatchResult(
        watched_id=user_id, is_watching=False, watcher_count=watchers.watcher_count(db, user_id)
    )


@router.get("/{user_id}/is-watching", response_model=schemas.WatchStatus)
def is_watching(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.WatchStatus:
    return schemas.WatchStatus(is_watching=watchers.is_watching(db, current_user.id, user_id))


@router.get("/{username}", response_model=schemas.UserProfile)
def get_profile(
    username: str,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.UserProfile:
    """Channel page. The owner also sees their unlisted and private videos."""
    user = db.scalar(select(models.User).where(models.User.username == username))
    if user is None:
        raise NotFound("User not found")

    public = schemas.UserPublic.model_validate(user).model_dump(exclude={"links"})
    return schemas.UserProfile(
        **public,
        links=user.links or [],
        watcher_count=watchers.watcher_count(db, user.id),
        videos=video_service.videos_by_user(
            db, user, include_private=current_user is not None and current_user.id == user.id
        ),
    )
