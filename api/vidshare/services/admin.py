"""Administrative listings and deletions.

Deletions remove dependent rows explicitly, inside a single transaction, and
record an audit entry in that same transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import InvalidOperation, NotFound
from ..utils.audit import log_admin_action

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500


def _clamp(limit: int) -> int:
    return max(1, min(limit, MAX_PAGE_SIZE))


# ============================================================================
# LISTINGS
# ============================================================================


def list_users(db: Session, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> list[schemas.AdminUser]:
    users = db.scalars(
        select(models.User)
        .order_by(models.User.created_at.desc(), models.User.id.desc())
        .offset(offset)
        .limit(_clamp(limit))
    )
    return [schemas.AdminUser.model_validate(user) for user in users]


def list_videos(db: Session, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> list[schemas.AdminVideo]:
    rows = db.execute(
        select(models.Video, models.User.username)
        .join(models.User, models.Video.user_id == models.User.id)
        .order_by(models.Video.created_at.desc(), models.Video.id.desc())
        .offset(offset)
        .limit(_clamp(limit))
    )
    return [
        schemas.AdminVideo(
            id=video.id,
            user_id=video.user_id,
            username=username,
            title=video.title,
            views=video.views,
            visibility=video.visibility,
            created_at=video.created_at,
        )
        for video, username in rows
    ]


def list_comments(db: Session, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> list[schemas.AdminComment]:
    rows = db.execute(
        select(models.Comment, models.User.username)
        .join(models.User, models.Comment.user_id == models.User.id)
        .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
        .offset(offset)
        .limit(_clamp(limit))
    )
    return [
        schemas.AdminComment(
            id=comment.id,
            user_id=comment.user_id,
            username=username,
            video_id=comment.video_id,
            text=comment.text,
            created_at=comment.created_at,
        )
        for comment, username in rows
    ]


def list_audit_log(db: Session, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> list[schemas.AuditLogEntry]:
    entries = db.scalars(
        select(models.AuditLog)
        .order_by(models.AuditLog.created_at.desc(), models.AuditLog.id.desc())
        .offset(offset)
        .limit(_clamp(limit))
    )
    return [schemas.AuditLogEntry.model_validate(entry) for entry in entries]


# ============================================================================
# USER DELETION STEPS
# ============================================================================


def _user_video_ids(user_id: int):
    return select(models.Video.id).where(models.Video.user_id == user_id).scalar_subquery()


def _delete_user_comments(db: Session, user_id: int) -> None:
    """The user's comments plus every comment on the user's videos."""
    db.execute(
        delete(models.Comment).where(
            or_(
                models.Comment.user_id == user_id,
                models.Comment.video_id.in_(_user_video_ids(user_id)),
            )
        )
    )


def _delete_user_reactions(db: Session, user_id: int) -> None:
    """Reactions by the user and reactions on the user's videos."""
    db.execute(
        delete(models.VideoReaction).where(
            or_(
                models.VideoReaction.user_id == user_id,
                models.VideoReaction.video_id.in_(_user_video_ids(user_id)),
            )
        )
    )


def _delete_user_videos(db: Session, user_id: int) -> None:
    db.execute(delete(models.Video).where(models.Video.user_id == user_id))


def _delete_user_watch_edges(db: Session, user_id: int) -> None:
    db.execute(
        delete(models.Watcher).where(
            or_(models.Watcher.watcher_id == user_id, models.Watcher.watched_id == user_id)
        )
    )


def _delete_user_notifications(db: Session, user_id: int) -> None:
    db.execute(delete(models.Notification).where(models.Notification.user_id == user_id))


def delete_user(db: Session, actor: models.User, user_id: int) -> None:
    """
    Remove a user and everything they own in one transaction.

    Any failing step rolls the whole deletion back, audit entry included.
    """
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFound("User not found")
    if user.id == actor.id:
        raise InvalidOperation("Admins cannot delete their own account")
    username = user.username

    try:
        _delete_user_comments(db, user_id)
        _delete_user_reactions(db, user_id)
        _delete_user_videos(db, user_id)
        _delete_user_watch_edges(db, user_id)
        _delete_user_notifications(db, user_id)
        db.execute(delete(models.User).where(models.User.id == user_id))
        log_admin_action(db, actor.id, "delete_user", "user", user_id, note=f"username={username}")
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Deleting user {user_id} failed, rolled back", exc_info=True)
        raise

    logger.info(f"Admin {actor.id} deleted user {user_id} ({username})")


def delete_video(db: Session, actor: models.User, video_id: int) -> None:
    video = db.get(models.Video, video_id)
    if video is None:
        raise NotFound("Video not found")
    title = video.title

    try:
        db.execute(delete(models.Comment).where(models.Comment.video_id == video_id))
        db.execute(delete(models.VideoReaction).where(models.VideoReaction.video_id == video_id))
        db.execute(delete(models.Video).where(models.Video.id == video_id))
        log_admin_action(db, actor.id, "delete_video", "video", video_id, note=f"title={title}")
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Admin {actor.id} deleted video {video_id}")


def delete_comment(db: Session, actor: models.User, comment_id: int) -> None:
    comment = db.get(models.Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")

    try:
        db.execute(delete(models.Comment).where(models.Comment.id == comment_id))
        log_admin_action(db, actor.id, "delete_comment", "comment", comment_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Admin {actor.id} deleted comment {comment_id}")
