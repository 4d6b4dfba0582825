"""Watch (follow) edges between users."""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import AlreadyWatching, InvalidOperation, NotFound, NotWatching

logger = logging.getLogger(__name__)


def watch(db: Session, watcher_id: int, watched_id: int) -> None:
    """
    Create the edge watcher -> watched.

    Duplicates are detected by the primary key rather than a prior read, so two
    concurrent requests cannot both succeed.
    """
    if watcher_id == watched_id:
        raise InvalidOperation("You cannot watch yourself")

    if db.get(models.User, watched_id) is None:
        raise NotFound("User not found")

    db.add(models.Watcher(watcher_id=watcher_id, watched_id=watched_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyWatching()
    logger.info(f"User {watcher_id} now watches {watched_id}")


def unwatch(db: Session, watcher_id: int, watched_id: int) -> None:
    result = db.execute(
        delete(models.Watcher).where(
            models.Watcher.watcher_id == watcher_id,
            models.Watcher.watched_id == watched_id,
        )
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotWatching()
    db.commit()
    logger.info(f"User {watcher_id} stopped watching {watched_id}")


def is_watching(db: Session, watcher_id: int, watched_id: int) -> bool:
    return db.get(models.Watcher, (watcher_id, watched_id)) is not None


def watcher_count(db: Session, user_id: int) -> int:
    return db.scalar(
        select(func.count()).select_from(models.Watcher).where(models.Watcher.watched_id == user_id)
    ) or 0


def watcher_ids(db: Session, user_id: int) -> list[int]:
    """Everyone watching ``user_id``."""
    return list(
        db.scalars(select(models.Watcher.watcher_id).where(models.Watcher.watched_id == user_id))
    )
