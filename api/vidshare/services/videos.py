"""Video catalog: listing, lookup, upload bookkeeping and metadata edits."""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import ensure_owner
from ..errors import NotFound, ValidationError
from ..schemas import NotificationType, RelatedEntityType
from . import watchers
from .media_host import HostedAsset
from .notifications import NotificationService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
SUGGESTION_LIMIT = 5

ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".mov", ".webm", ".mkv", ".avi", ".m4v"}


def _newest_first(query):
    return query.order_by(models.Video.created_at.desc(), models.Video.id.desc())


def _with_owner():
    return select(models.Video, models.User).join(models.User, models.Video.user_id == models.User.id)


def to_summary(video: models.Video, owner: models.User | None) -> schemas.VideoSummary:
    summary = schemas.VideoSummary.model_validate(video)
    if owner is not None:
        summary.username = owner.username
        summary.avatar_url = owner.avatar_url
    return summary


def _clamp(limit: int) -> int:
    return max(1, min(limit, MAX_PAGE_SIZE))


def list_public(
    db: Session,
    category: str | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[schemas.VideoSummary]:
    query = _with_owner().where(models.Video.visibility == "Public")
    if category and category != "All":
        query = query.where(models.Video.category == category)
    rows = db.execute(_newest_first(query).offset(offset).limit(_clamp(limit)))
    return [to_summary(video, owner) for video, owner in rows]


def search(db: Session, q: str | None, limit: int = DEFAULT_PAGE_SIZE) -> list[schemas.VideoSummary]:
    """Case-insensitive substring match on title or description."""
    if not q or not q.strip():
        raise ValidationError("Search query is required")
    pattern = f"%{q.strip()}%"
    query = _with_owner().where(
        models.Video.visibility == "Public",
        or_(models.Video.title.ilike(pattern), models.Video.description.ilike(pattern)),
    )
    rows = db.execute(_newest_first(query).limit(_clamp(limit)))
    return [to_summary(video, owner) for video, owner in rows]


def suggestions(db: Session, q: str | None) -> list[schemas.VideoSuggestion]:
    if not q or not q.strip():
        return []
    rows = db.execute(
        select(models.Video.id, models.Video.title)
        .where(
            models.Video.visibility == "Public",
            models.Video.title.ilike(f"%{q.strip()}%"),
        )
        .order_by(models.Video.views.desc(), models.Video.id.desc())
        .limit(SUGGESTION_LIMIT)
    )
    return [schemas.VideoSuggestion(id=row.id, title=row.title) for row in rows]


def get_video(db: Session, video_id: int) -> models.Video:
    video = db.get(models.Video, video_id)
    if video is None:
        raise NotFound("Video not found")
    return video


def get_visible_video(db: Session, video_id: int, viewer: models.User | None) -> models.Video:
    """Private videos exist only for their owner; everyone else gets a 404."""
    video = get_video(db, video_id)
    if video.visibility == "Private" and (viewer is None or viewer.id != video.user_id):
        raise NotFound("Video not found")
    return video


def reaction_counts(db: Session, video_id: int) -> tuple[int, int]:
    """(likes, dislikes), always computed from the reaction rows."""
    rows = db.execute(
        select(models.VideoReaction.type, func.count())
        .where(models.VideoReaction.video_id == video_id)
        .group_by(models.VideoReaction.type)
    )
    counts = dict(rows.all())
    return counts.get("like", 0), counts.get("dislike", 0)


def detail(db: Session, video: models.Video) -> schemas.VideoDetail:
    owner = db.get(models.User, video.user_id)
    likes, dislikes = reaction_counts(db, video.id)
    out = schemas.VideoDetail.model_validate(video)
    out.username = owner.username
    out.avatar_url = owner.avatar_url
    out.display_name = owner.display_name
    out.likes = likes
    out.dislikes = dislikes
    return out


def increment_views(db: Session, video_id: int) -> int:
    """Unconditional +1 done in SQL so concurrent views are never lost."""
    result = db.execute(
        update(models.Video).where(models.Video.id == video_id).values(views=models.Video.views + 1)
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFound("Video not found")
    db.commit()
    return db.scalar(select(models.Video.views).where(models.Video.id == video_id))


def validate_video_file(filename: str | None, content_type: str | None, size: int, limit: int) -> None:
    if size == 0:
        raise ValidationError("Video file is empty")
    if size > limit:
        raise ValidationError(f"Video file exceeds the {limit // (1024 * 1024)} MiB limit")
    extension = ""
    if filename and "." in filename:
        extension = "." + filename.rsplit(".", 1)[1].lower()
    if not (content_type or "").startswith("video/") and extension not in ALLOWED_VIDEO_EXTENSIONS:
        raise ValidationError("Unsupported video format")


def record_upload(
    db: Session,
    uploader: models.User,
    asset: HostedAsset,
    title: str,
    description: str | None,
    visibility: str = "Public",
    category: str = "All",
) -> tuple[models.Video, list[models.Notification]]:
    """
    Insert the video row and a NEW_VIDEO notification for every watcher.

    Both land in one commit. On failure the session is rolled back and the
    exception propagates, leaving the hosted asset for the caller to clean up.
    """
    try:
        video = models.Video(
            user_id=uploader.id,
            title=title,
            description=description,
            video_url=asset.url,
            thumbnail_url=asset.thumbnail_url,
            asset_id=asset.asset_id,
            file_size=asset.bytes,
            duration=asset.duration,
            width=asset.width,
            height=asset.height,
            format=asset.format,
            visibility=visibility,
            category=category,
        )
        db.add(video)
        db.flush()

        message = f"New video from {uploader.username}: {title}"
        notifications = NotificationService.add_many(
            db,
            [
                NotificationService.build(
                    recipient_id=watcher_id,
                    notification_type=NotificationType.NEW_VIDEO,
                    message=message,
                    sender_id=uploader.id,
                    related_type=RelatedEntityType.VIDEO,
                    related_id=video.id,
                )
                for watcher_id in watchers.watcher_ids(db, uploader.id)
            ],
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(video)
    logger.info(
        f"User {uploader.id} uploaded video {video.id}; notified {len(notifications)} watchers"
    )
    return video, notifications


def update_video(
    db: Session, video_id: int, user: models.User, payload: schemas.VideoUpdate
) -> models.Video:
    video = get_video(db, video_id)
    ensure_owner(video.user_id, user)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(video, field, value)
    db.commit()
    db.refresh(video)
    return video


def delete_video(db: Session, video_id: int, user: models.User) -> None:
    video = get_video(db, video_id)
    ensure_owner(video.user_id, user)
    db.delete(video)
    db.commit()
    logger.info(f"User {user.id} deleted video {video_id}")


def videos_by_user(db: Session, owner: models.User, include_private: bool) -> list[schemas.VideoSummary]:
    query = select(models.Video).where(models.Video.user_id == owner.id)
    if not include_private:
        query = query.where(models.Video.visibility == "Public")
    return [to_summary(video, owner) for video in db.scalars(_newest_first(query))]


def studio_videos(db: Session, owner: models.User) -> list[schemas.StudioVideo]:
    """The owner's videos with comment count as engagement and like totals."""
    comment_counts = (
        select(models.Comment.video_id, func.count(models.Comment.id).label("n"))
        .group_by(models.Comment.video_id)
        .subquery()
    )
    like_counts = (
        select(models.VideoReaction.video_id, func.count(models.VideoReaction.id).label("n"))
        .where(models.VideoReaction.type == "like")
        .group_by(models.VideoReaction.video_id)
        .subquery()
    )
    rows = db.execute(
        _newest_first(
            select(
                models.Video,
                func.coalesce(comment_counts.c.n, 0),
                func.coalesce(like_counts.c.n, 0),
            )
            .outerjoin(comment_counts, comment_counts.c.video_id == models.Video.id)
            .outerjoin(like_counts, like_counts.c.video_id == models.Video.id)
            .where(models.Video.user_id == owner.id)
        )
    )
    out = []
    for video, engagement, likes in rows:
        item = schemas.StudioVideo.model_validate(video)
        item.username = owner.username
        item.avatar_url = owner.avatar_url
        item.engagement = engagement
        item.likes = likes
        out.append(item)
    return out
