"""Byte-range streaming of locally stored video files."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterator

from fastapi import APIRouter, Header
from fastapi.responses import StreamingResponse

from .. import settings
from ..errors import NotFound, RangeNotSatisfiable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/streaming", tags=["Streaming"])

CHUNK_SIZE = 1024 * 1024
_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


def parse_range(header: str, file_size: int) -> tuple[int, int]:
    """
    Parse a single ``bytes=`` range into inclusive (start, end).

    Supports ``start-end``, open ended ``start-`` and suffix ``-length`` forms.
    An end past the file is clamped. Anything else is unsatisfiable.
    """
    unsatisfiable = RangeNotSatisfiable(headers={"Content-Range": f"bytes */{file_size}"})

    match = _RANGE_RE.match(header.strip())
    # An empty file has no byte a range could select
    if not match or file_size == 0 or (not match.group(1) and not match.group(2)):
        raise unsatisfiable

    first, last = match.groups()
    if not first:
        length = int(last)
        if length == 0:
            raise unsatisfiable
        return max(0, file_size - length), file_size - 1

    start = int(first)
    end = int(last) if last else file_size - 1
    if start >= file_size or end < start:
        raise unsatisfiable
    return start, min(end, file_size - 1)


def _iter_file(path: Path, start: int, length: int) -> Iterator[bytes]:
    with path.open("rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def resolve_video_path(video_id: str) -> Path:
    if not _VIDEO_ID_RE.match(video_id):
        raise NotFound("Video not found")
    path = Path(settings.VIDEO_STORAGE_DIR) / f"{video_id}.mp4"
    if not path.is_file():
        raise NotFound("Video not found")
    return path


@router.get("/{video_id}")
def stream_video(video_id: str, range: str | None = Header(None)) -> StreamingResponse:
    """
    Stream ``<VIDEO_STORAGE_DIR>/<video_id>.mp4``.

    With a ``Range`` header the response is 206 with that slice; without one
    the whole file is sent with 200.
    """
    path = resolve_video_path(video_id)
    file_size = os.path.getsize(path)

    if range is None:
        return StreamingResponse(
            _iter_file(path, 0, file_size),
            media_type="video/mp4",
            headers={"Content-Length": str(file_size), "Accept-Ranges": "bytes"},
        )

    start, end = parse_range(range, file_size)
    length = end - start + 1
    logger.debug(f"Streaming {video_id} bytes {start}-{end}/{file_size}")
    return StreamingResponse(
        _iter_file(path, start, length),
        status_code=206,
        media_type="video/mp4",
        headers={
            "Content-Range": f"bytes {start}-{end}/{file_size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(length),
        },
    )
