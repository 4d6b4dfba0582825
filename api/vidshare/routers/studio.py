"""Creator studio endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_capabilities
from ..deps import get_db
from ..services import videos as video_service

router = APIRouter(prefix="/studio", tags=["Studio"])


@router.get("/my-videos", response_model=list[schemas.StudioVideo])
def my_videos(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_capabilities("creator")),
) -> list[schemas.StudioVideo]:
    """All of the caller's videos, any visibility, with comment and like totals."""
    return video_service.studio_videos(db, current_user)
