"""Comments, @mentions and thread reconstruction."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import ensure_owner
from ..errors import NotFound, ValidationError
from ..schemas import NotificationType, RelatedEntityType
from .notifications import NotificationService

logger = logging.getLogger(__name__)

MENTION_RE = re.compile(r"@([A-Za-z0-9_]+)")


def extract_mentions(text: str) -> list[str]:
    """Distinct usernames mentioned in ``text``, in order of first mention."""
    seen: list[str] = []
    for name in MENTION_RE.findall(text or ""):
        if name not in seen:
            seen.append(name)
    return seen


def build_comment_tree(comments: Iterable[schemas.CommentOut]) -> list[schemas.CommentNode]:
    """
    Rebuild the reply hierarchy from ``parent_id`` links.

    Siblings are ordered oldest first (ties by id). A comment whose parent is
    not in ``comments`` becomes a root, so every comment appears exactly once.
    """
    nodes = {c.id: schemas.CommentNode(**c.model_dump()) for c in comments}

    roots: list[schemas.CommentNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_id) if node.parent_id is not None else None
        # A self-reference cannot come from the database, but must not loop
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.replies.append(node)

    def order(siblings: list[schemas.CommentNode]) -> None:
        siblings.sort(key=lambda n: (n.created_at, n.id))
        for sibling in siblings:
            order(sibling.replies)

    order(roots)
    return roots


def to_out(comment: models.Comment, author: models.User | None) -> schemas.CommentOut:
    return schemas.CommentOut(
        id=comment.id,
        video_id=comment.video_id,
        user_id=comment.user_id,
        parent_id=comment.parent_id,
        text=comment.text,
        created_at=comment.created_at,
        author=author.username if author else None,
        author_avatar_url=author.avatar_url if author else None,
    )


def list_comments(db: Session, video_id: int) -> list[schemas.CommentOut]:
    """All comments of a video, newest first."""
    rows = db.execute(
        select(models.Comment, models.User)
        .join(models.User, models.Comment.user_id == models.User.id)
        .where(models.Comment.video_id == video_id)
        .order_by(models.Comment.created_at.desc(), models.Comment.id.desc())
    )
    return [to_out(comment, author) for comment, author in rows]


def create_comment(
    db: Session,
    video: models.Video,
    author: models.User,
    payload: schemas.CommentCreate,
) -> tuple[schemas.CommentOut, list[models.Notification]]:
    """
    Insert a comment plus one MENTION notification per existing mentioned user.

    Returns the denormalized comment and the committed notifications so the
    caller can push them.
    """
    if payload.parent_id is not None:
        parent = db.get(models.Comment, payload.parent_id)
        if parent is None or parent.video_id != video.id:
            raise ValidationError("Parent comment does not belong to this video")

    comment = models.Comment(
        user_id=author.id,
        video_id=video.id,
        parent_id=payload.parent_id,
        text=payload.text,
    )
    db.add(comment)
    db.flush()

    notifications: list[models.Notification] = []
    mentioned = extract_mentions(payload.text)
    if mentioned:
        recipients = db.scalars(select(models.User).where(models.User.username.in_(mentioned)))
        message = f"@{author.username} mentioned you in a comment on {video.title}"
        notifications = NotificationService.add_many(
            db,
            [
                NotificationService.build(
                    recipient_id=recipient.id,
                    notification_type=NotificationType.MENTION,
                    message=message,
                    sender_id=author.id,
                    related_type=RelatedEntityType.COMMENT,
                    related_id=comment.id,
                )
                for recipient in recipients
            ],
        )

    db.commit()
    db.refresh(comment)
    logger.info(
        f"User {author.id} commented {comment.id} on video {video.id} "
        f"({len(notifications)} mentions)"
    )
    return to_out(comment, author), notifications


def get_comment(db: Session, comment_id: int) -> models.Comment:
    comment = db.get(models.Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    return comment


def update_comment(
    db: Session, comment_id: int, user: models.User, payload: schemas.CommentUpdate
) -> schemas.CommentOut:
    comment = get_comment(db, comment_id)
    ensure_owner(comment.user_id, user)
    comment.text = payload.text
    db.commit()
    db.refresh(comment)
    return to_out(comment, user)


def delete_comment(db: Session, comment_id: int, user: models.User) -> None:
    """Delete a comment; its replies go with it through the parent_id cascade."""
    comment = get_comment(db, comment_id)
    ensure_owner(comment.user_id, user)
    db.delete(comment)
    db.commit()
