"""WebSocket endpoint for room subscriptions.

Frames in both directions are JSON objects ``{"event": ..., "data": ...}``.
Client events: ``joinRoom`` / ``leaveRoom`` (data: video id), ``join`` (data:
the caller's own ``user:<id>`` key, requires authentication) and ``ping``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from .. import models
from ..auth import authenticate_token
from ..db import SessionLocal
from ..realtime import RoomBroadcaster, user_room, video_room

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


def _resolve_user_id(websocket: WebSocket, token: str | None) -> int | None:
    session_user_id = websocket.session.get("user_id") if "session" in websocket.scope else None

    db = SessionLocal()
    try:
        if session_user_id is not None:
            if db.get(models.User, session_user_id) is not None:
                return session_user_id
        user = authenticate_token(db, token)
        return user.id if user else None
    finally:
        db.close()


def _video_id(data: Any) -> int | None:
    if isinstance(data, bool):
        return None
    if isinstance(data, int):
        return data
    if isinstance(data, str) and data.isdigit():
        return int(data)
    return None


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json({"event": "error", "data": {"message": message}})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str | None = Query(None)):
    """
    Subscribe to live updates.

    Anonymous sockets may watch video rooms; personal rooms need a token
    (``?token=<jwt>``) or a login session.
    """
    broadcaster: RoomBroadcaster = websocket.app.state.broadcaster
    user_id = _resolve_user_id(websocket, token)

    if not await broadcaster.connect(websocket):
        await websocket.close(code=1013, reason="Connection limit reached")
        return

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                await _send_error(websocket, "Frames must be JSON")
                continue
            if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
                await _send_error(websocket, "Frames must look like {\"event\": ..., \"data\": ...}")
                continue

            event, data = frame["event"], frame.get("data")

            if event == "ping":
                await websocket.send_json({"event": "pong", "data": data})

            elif event in ("joinRoom", "leaveRoom"):
                video_id = _video_id(data)
                if video_id is None:
                    await _send_error(websocket, f"{event} expects a video id")
                    continue
                room = video_room(video_id)
                if event == "joinRoom":
                    await broadcaster.join(websocket, room)
                    await websocket.send_json({"event": "joined", "data": {"room": room}})
                else:
                    await broadcaster.leave(websocket, room)
                    await websocket.send_json({"event": "left", "data": {"room": room}})

            elif event == "join":
                if user_id is None:
                    await _send_error(websocket, "Authentication required to join a personal room")
                    continue
                if data != user_room(user_id):
                    logger.warning(f"User {user_id} tried to join foreign room {data!r}")
                    await _send_error(websocket, "You can only join your own room")
                    continue
                await broadcaster.join(websocket, data)
                await websocket.send_json({"event": "joined", "data": {"room": data}})

            else:
                await _send_error(websocket, f"Unknown event: {event}")

    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
