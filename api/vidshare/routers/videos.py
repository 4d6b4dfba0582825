"""Video catalog, reactions and comments endpoints."""

from __future__ import annotations

import logging
from typing import get_args

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, schemas, settings
from ..auth import get_current_user, get_current_user_optional, require_capabilities
from ..deps import get_broadcaster, get_db, get_media_host
from ..errors import DomainError, ValidationError
from ..realtime import RoomBroadcaster, video_room
from ..services import comments as comment_service
from ..services import reactions as reaction_service
from ..services import videos as video_service
from ..services.media_host import MediaHostClient
from ..services.notifications import NotificationService
from ..tasks import enqueue_asset_cleanup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["Videos"])


def _check_classification(visibility: str, category: str) -> None:
    if visibility not in get_args(schemas.Visibility):
        raise ValidationError(f"visibility must be one of: {', '.join(get_args(schemas.Visibility))}")
    if category not in schemas.VIDEO_CATEGORIES:
        raise ValidationError("Unknown category")


# ============================================================================
# CATALOG
# ============================================================================


@router.post("/upload", response_model=schemas.VideoDetail, status_code=status.HTTP_201_CREATED)
def upload_video(
    video: UploadFile = File(...),
    title: str = Form(..., min_length=1, max_length=255),
    description: str | None = Form(None, max_length=5000),
    visibility: str = Form("Public"),
    category: str = Form("All"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_capabilities("creator")),
    media_host: MediaHostClient = Depends(get_media_host),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
) -> schemas.VideoDetail:
    """
    Upload a video to the media host and publish it on the uploader's channel.

    Every watcher of the uploader gets a NEW_VIDEO notification, written in the
    same transaction as the video row.
    """
    _check_classification(visibility, category)

    limit = settings.VIDEO_UPLOAD_SIZE_LIMIT_BYTES
    content = video.file.read(limit + 1)
    video_service.validate_video_file(video.filename, video.content_type, len(content), limit)

    asset = media_host.upload_video(content, video.filename or "upload.mp4")

    try:
        record, notifications = video_service.record_upload(
            db,
            current_user,
            asset,
            title=title.strip(),
            description=description,
            visibility=visibility,
            category=category,
        )
    except Exception:
        logger.error(
            f"Saving upload by user {current_user.id} failed; asset {asset.asset_id} is orphaned",
            exc_info=True,
        )
        enqueue_asset_cleanup(asset.asset_id)
        raise DomainError("The upload could not be saved")

    NotificationService.push(db, broadcaster, notifications)
    return video_service.detail(db, record)


@router.get("", response_model=list[schemas.VideoSummary])
def list_videos(
    category: str | None = Query(None, max_length=50),
    limit: int = Query(video_service.DEFAULT_PAGE_SIZE, ge=1, le=video_service.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> list[schemas.VideoSummary]:
    """Public catalog, newest first."""
    return video_service.list_public(db, category=category, limit=limit, offset=offset)


@router.get("/search", response_model=list[schemas.VideoSummary])
def search_videos(
    q: str | None = Query(None, max_length=200),
    db: Session = Depends(get_db),
) -> list[schemas.VideoSummary]:
    return video_service.search(db, q)


@router.get("/suggestions", response_model=list[schemas.VideoSuggestion])
def video_suggestions(
    q: str | None = Query(None, max_length=200),
    db: Session = Depends(get_db),
) -> list[schemas.VideoSuggestion]:
    return video_service.suggestions(db, q)


@router.get("/{video_id}", response_model=schemas.VideoDetail)
def get_video(
    video_id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> schemas.VideoDetail:
    video = video_service.get_visible_video(db, video_id, current_user)
    return video_service.detail(db, video)


@router.put("/{video_id}", response_model=schemas.VideoDetail)
def update_video(
    video_id: int,
    payload: schemas.VideoUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.VideoDetail:
    if payload.category is not None and payload.category not in schemas.VIDEO_CATEGORIES:
        raise ValidationError("Unknown category")
    video = video_service.update_video(db, video_id, current_user, payload)
    return video_service.detail(db, video)


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_video(
    video_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    video_service.delete_video(db, video_id, current_user)


@router.post("/{video_id}/view", response_model=schemas.ViewCount)
def register_view(
    video_id: int,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
) -> schemas.ViewCount:
    """Count a view and tell everyone on the video page."""
    video_service.get_visible_video(db, video_id, current_user)
    views = video_service.increment_views(db, video_id)
    broadcaster.publish(
        video_room(video_id), "video:viewCountUpdate", {"videoId": video_id, "views": views}
    )
    return schemas.ViewCount(video_id=video_id, views=views)


@router.get("/{video_id}/signed-url", response_model=schemas.PlaybackUrl)
def playback_url(
    video_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
) -> schemas.PlaybackUrl:
    """Playback URL for a signed-in viewer; fetching it counts as a view."""
    video = video_service.get_visible_video(db, video_id, current_user)
    url = video.video_url
    views = video_service.increment_views(db, video_id)
    broadcaster.publish(
        video_room(video_id), "video:viewCountUpdate", {"videoId": video_id, "views": views}
    )
    return schemas.PlaybackUrl(video_id=video_id, url=url, views=views)


# ============================================================================
# REACTIONS
# ============================================================================


def _react(
    kind: str,
    video_id: int,
    db: Session,
    user: models.User,
    broadcaster: RoomBroadcaster,
) -> schemas.ReactionCounts:
    video_service.get_visible_video(db, video_id, user)
    counts = reaction_service.toggle_reaction(db, user.id, video_id, kind)
    broadcaster.publish(
        video_room(video_id),
        "video:reactionUpdate",
        {"videoId": video_id, "likes": counts.likes, "dislikes": counts.dislikes},
    )
    return counts


@router.post("/{video_id}/like", response_model=schemas.ReactionCounts)
def like_video(
    video_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
) -> schemas.ReactionCounts:
    return _react("like", video_id, db, current_user, broadcaster)


@router.post("/{video_id}/dislike", response_model=schemas.ReactionCounts)
def dislike_video(
    video_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
) -> schemas.ReactionCounts:
    return _react("dislike", video_id, db, current_user, broadcaster)


@router.get("/{video_id}/reaction", response_model=schemas.MyReaction)
def my_reaction(
    video_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MyReaction:
    """The caller's current reaction, for restoring button state."""
    video_service.get_visible_video(db, video_id, current_user)
    return schemas.MyReaction(
        video_id=video_id,
        reaction=reaction_service.current_reaction(db, current_user.id, video_id),
    )


# ============================================================================
# COMMENTS
# ============================================================================


@router.get("/{video_id}/comments", response_model=list[schemas.CommentNode])
def list_comments(
    video_id: int,
    view: str = Query("flat", pattern="^(flat|tree)$"),
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
) -> list[schemas.CommentNode]:
    """
    Comments on a video.

    ``view=flat`` lists them newest first with empty ``replies``;
    ``view=tree`` nests replies under their parents, oldest first.
    """
    video_service.get_visible_video(db, video_id, current_user)
    flat = comment_service.list_comments(db, video_id)
    if view == "tree":
        return comment_service.build_comment_tree(flat)
    return [schemas.CommentNode(**c.model_dump()) for c in flat]


@router.post(
    "/{video_id}/comments",
    response_model=schemas.CommentOut,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    video_id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
) -> schemas.CommentOut:
    video = video_service.get_visible_video(db, video_id, current_user)
    comment, notifications = comment_service.create_comment(db, video, current_user, payload)

    broadcaster.publish(video_room(video_id), "newComment", comment.model_dump(mode="json"))
    NotificationService.push(db, broadcaster, notifications)
    return comment


@router.put("/comments/{comment_id}", response_model=schemas.CommentOut)
def update_comment(
    comment_id: int,
    payload: schemas.CommentUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.CommentOut:
    return comment_service.update_comment(db, comment_id, current_user, payload)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    comment_service.delete_comment(db, comment_id, current_user)
