"""Notification inbox endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services.notifications import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[schemas.NotificationOut])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> list[schemas.NotificationOut]:
    """The caller's notifications, newest first, with referents resolved."""
    return NotificationService.list_for_user(
        db, current_user.id, unread_only=unread_only, limit=limit, offset=offset
    )


@router.get("/unread-count", response_model=schemas.UnreadCount)
def unread_count(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UnreadCount:
    return schemas.UnreadCount(unread_count=NotificationService.unread_count(db, current_user.id))


@router.put("/read-all", response_model=schemas.MarkedRead)
def mark_all_read(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkedRead:
    return schemas.MarkedRead(updated=NotificationService.mark_all_read(db, current_user.id))


@router.put("/{notification_id}/read", response_model=schemas.NotificationOut)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.NotificationOut:
    return NotificationService.mark_read(db, current_user.id, notification_id)
