from __future__ import annotations

from typing import TYPE_CHECKING, Generator

from fastapi import Request
from sqlalchemy.orm import Session

from .db import get_session

if TYPE_CHECKING:
    from .realtime import RoomBroadcaster
    from .services.media_host import MediaHostClient


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_broadcaster(request: Request) -> "RoomBroadcaster":
    """The fan-out service constructed at startup."""
    return request.app.state.broadcaster


def get_media_host(request: Request) -> "MediaHostClient":
    return request.app.state.media_host
