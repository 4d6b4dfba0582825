"""Admin endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_capabilities
from ..deps import get_db
from ..services import admin as admin_service

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = require_capabilities("admin")

_limit = Query(admin_service.DEFAULT_PAGE_SIZE, ge=1, le=admin_service.MAX_PAGE_SIZE)
_offset = Query(0, ge=0)


@router.get("/users", response_model=list[schemas.AdminUser])
def list_users(
    limit: int = _limit,
    offset: int = _offset,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
) -> list[schemas.AdminUser]:
    return admin_service.list_users(db, limit=limit, offset=offset)


@router.get("/videos", response_model=list[schemas.AdminVideo])
def list_videos(
    limit: int = _limit,
    offset: int = _offset,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
) -> list[schemas.AdminVideo]:
    """Every video regardless of visibility."""
    return admin_service.list_videos(db, limit=limit, offset=offset)


@router.get("/comments", response_model=list[schemas.AdminComment])
def list_comments(
    limit: int = _limit,
    offset: int = _offset,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
) -> list[schemas.AdminComment]:
    return admin_service.list_comments(db, limit=limit, offset=offset)


@router.get("/audit-log", response_model=list[schemas.AuditLogEntry])
def audit_log(
    limit: int = _limit,
    offset: int = _offset,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
) -> list[schemas.AuditLogEntry]:
    return admin_service.list_audit_log(db, limit=limit, offset=offset)


@router.delete("/users/{user_id}", response_model=schemas.DeleteResult)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.DeleteResult:
    """Delete a user with their videos, comments, reactions and watch edges."""
    admin_service.delete_user(db, admin, user_id)
    return schemas.DeleteResult(id=user_id)


@router.delete("/videos/{video_id}", response_model=schemas.DeleteResult)
def delete_video(
    video_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.DeleteResult:
    admin_service.delete_video(db, admin, video_id)
    return schemas.DeleteResult(id=video_id)


@router.delete("/comments/{comment_id}", response_model=schemas.DeleteResult)
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.DeleteResult:
    admin_service.delete_comment(db, admin, comment_id)
    return schemas.DeleteResult(id=comment_id)
