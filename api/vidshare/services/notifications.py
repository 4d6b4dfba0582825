"""
Notification Service.

Writes notification rows, serves a recipient's inbox and pushes new
notifications to the recipient's personal room once they are committed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import NotFound
from ..realtime import user_room
from ..schemas import RelatedEntityType

if TYPE_CHECKING:
    from ..realtime import RoomBroadcaster

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


# ============================================================================
# REFERENT LOADERS
# ============================================================================


def _load_videos(db: Session, ids: set[int]) -> dict[int, schemas.VideoRef]:
    rows = db.execute(
        select(models.Video.id, models.Video.title, models.Video.thumbnail_url).where(
            models.Video.id.in_(ids)
        )
    )
    return {
        row.id: schemas.VideoRef(id=row.id, title=row.title, thumbnail_url=row.thumbnail_url)
        for row in rows
    }


def _load_comments(db: Session, ids: set[int]) -> dict[int, schemas.CommentRef]:
    rows = db.execute(
        select(models.Comment.id, models.Comment.video_id, models.Comment.text).where(
            models.Comment.id.in_(ids)
        )
    )
    return {
        row.id: schemas.CommentRef(id=row.id, video_id=row.video_id, text=row.text) for row in rows
    }


def _load_users(db: Session, ids: set[int]) -> dict[int, schemas.UserRef]:
    rows = db.execute(
        select(models.User.id, models.User.username, models.User.avatar_url).where(
            models.User.id.in_(ids)
        )
    )
    return {
        row.id: schemas.UserRef(id=row.id, username=row.username, avatar_url=row.avatar_url)
        for row in rows
    }


# One loader per referent kind; a new RelatedEntityType needs an entry here.
RELATED_LOADERS: dict[RelatedEntityType, Callable[[Session, set[int]], dict[int, schemas.RelatedRef]]] = {
    RelatedEntityType.VIDEO: _load_videos,
    RelatedEntityType.COMMENT: _load_comments,
    RelatedEntityType.USER: _load_users,
}


def _related_kind(notification: models.Notification) -> RelatedEntityType | None:
    if notification.related_entity_type is None or notification.related_entity_id is None:
        return None
    try:
        return RelatedEntityType(notification.related_entity_type)
    except ValueError:
        logger.warning(
            f"Notification {notification.id} has unknown referent type "
            f"{notification.related_entity_type!r}"
        )
        return None


def resolve_related(
    db: Session, notifications: Iterable[models.Notification]
) -> dict[int, schemas.RelatedRef]:
    """Map notification id -> resolved referent, one query per referent kind."""
    notifications = list(notifications)
    wanted: dict[RelatedEntityType, set[int]] = {}
    for notification in notifications:
        kind = _related_kind(notification)
        if kind is not None:
            wanted.setdefault(kind, set()).add(notification.related_entity_id)

    loaded = {kind: RELATED_LOADERS[kind](db, ids) for kind, ids in wanted.items()}

    resolved: dict[int, schemas.RelatedRef] = {}
    for notification in notifications:
        kind = _related_kind(notification)
        if kind is None:
            continue
        ref = loaded[kind].get(notification.related_entity_id)
        if ref is not None:
            resolved[notification.id] = ref
    return resolved


# ============================================================================
# SERVICE
# ============================================================================


class NotificationService:
    """Service for writing and reading notifications."""

    @staticmethod
    def build(
        recipient_id: int,
        notification_type: schemas.NotificationType,
        message: str,
        sender_id: int | None = None,
        related_type: RelatedEntityType | None = None,
        related_id: int | None = None,
    ) -> models.Notification:
        return models.Notification(
            user_id=recipient_id,
            sender_id=sender_id,
            type=notification_type.value,
            message=message,
            is_read=False,
            related_entity_type=related_type.value if related_type else None,
            related_entity_id=related_id,
        )

    @staticmethod
    def add_many(db: Session, notifications: list[models.Notification]) -> list[models.Notification]:
        """
        Stage notifications in the caller's transaction.

        Nothing is committed here: the rows land together with whatever
        produced them (an upload, a comment) or not at all.
        """
        if notifications:
            db.add_all(notifications)
            db.flush()
        return notifications

    @staticmethod
    def serialize(db: Session, notifications: list[models.Notification]) -> list[schemas.NotificationOut]:
        related = resolve_related(db, notifications)
        return [
            schemas.NotificationOut(
                id=n.id,
                user_id=n.user_id,
                sender_id=n.sender_id,
                type=n.type,
                message=n.message,
                is_read=n.is_read,
                created_at=n.created_at,
                related_entity_id=n.related_entity_id,
                related_entity_type=_related_kind(n),
                related=related.get(n.id),
            )
            for n in notifications
        ]

    @staticmethod
    def push(
        db: Session,
        broadcaster: "RoomBroadcaster",
        notifications: list[models.Notification],
    ) -> None:
        """
        Push committed notifications to their recipients' rooms.

        Best effort: a recipient who is not connected simply finds the row in
        their inbox later.
        """
        if not notifications:
            return
        for out in NotificationService.serialize(db, notifications):
            broadcaster.publish(user_room(out.user_id), "newNotification", out.model_dump(mode="json"))

    @staticmethod
    def list_for_user(
        db: Session,
        user_id: int,
        unread_only: bool = False,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[schemas.NotificationOut]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query = select(models.Notification).where(models.Notification.user_id == user_id)
        if unread_only:
            query = query.where(models.Notification.is_read.is_(False))
        query = query.order_by(
            models.Notification.created_at.desc(), models.Notification.id.desc()
        ).offset(offset).limit(limit)
        notifications = list(db.scalars(query))
        return NotificationService.serialize(db, notifications)

    @staticmethod
    def unread_count(db: Session, user_id: int) -> int:
        return db.scalar(
            select(func.count(models.Notification.id)).where(
                models.Notification.user_id == user_id,
                models.Notification.is_read.is_(False),
            )
        ) or 0

    @staticmethod
    def mark_read(db: Session, user_id: int, notification_id: int) -> schemas.NotificationOut:
        """Mark one of the caller's notifications read; another user's id is a 404."""
        notification = db.scalar(
            select(models.Notification).where(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
        )
        if notification is None:
            raise NotFound("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            db.commit()
            db.refresh(notification)
        return NotificationService.serialize(db, [notification])[0]

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        result = db.execute(
            update(models.Notification)
            .where(
                models.Notification.user_id == user_id,
                models.Notification.is_read.is_(False),
            )
            .values(is_read=True)
        )
        db.commit()
        logger.info(f"Marked {result.rowcount} notifications read for user {user_id}")
        return result.rowcount
