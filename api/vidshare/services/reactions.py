"""Like/dislike toggling."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import Conflict, ValidationError
from .videos import get_video, reaction_counts

logger = logging.getLogger(__name__)

REACTION_TYPES = ("like", "dislike")


def _toggle_once(db: Session, user_id: int, video_id: int, kind: str) -> str | None:
    existing = db.scalar(
        select(models.VideoReaction)
        .where(
            models.VideoReaction.user_id == user_id,
            models.VideoReaction.video_id == video_id,
        )
        .with_for_update()
    )

    if existing is None:
        db.add(models.VideoReaction(user_id=user_id, video_id=video_id, type=kind))
        db.flush()
        return kind

    if existing.type == kind:
        db.delete(existing)
        db.flush()
        return None

    existing.type = kind
    db.flush()
    return kind


def toggle_reaction(db: Session, user_id: int, video_id: int, kind: str) -> schemas.ReactionCounts:
    """
    Apply a like/dislike press.

    Same kind again removes the reaction, the other kind switches it, no
    reaction yet adds it. The existing row is locked for the read-modify-write;
    when two first presses race, the loser hits the unique constraint and is
    retried once against the winner's row.
    """
    if kind not in REACTION_TYPES:
        raise ValidationError(f"Unknown reaction type: {kind}")

    get_video(db, video_id)

    for attempt in range(2):
        try:
            current = _toggle_once(db, user_id, video_id, kind)
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt:
                raise Conflict("Reaction was changed concurrently, please retry")
            logger.info(f"Concurrent reaction insert for user {user_id} on video {video_id}, retrying")

    likes, dislikes = reaction_counts(db, video_id)
    return schemas.ReactionCounts(video_id=video_id, likes=likes, dislikes=dislikes, reaction=current)


def current_reaction(db: Session, user_id: int, video_id: int) -> str | None:
    return db.scalar(
        select(models.VideoReaction.type).where(
            models.VideoReaction.user_id == user_id,
            models.VideoReaction.video_id == video_id,
        )
    )
