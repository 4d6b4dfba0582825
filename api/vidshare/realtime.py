"""Room-based WebSocket fan-out.

Handlers publish ``{"event", "data"}`` messages to named rooms (``video:<id>``
for everyone watching a video page, ``user:<id>`` for one account). Delivery is
best effort: nothing is stored or replayed, and a message for an empty room is
dropped.

With Redis, ``publish`` goes through the ``rooms:<room>`` channel so every API
worker relays it to its own sockets. Without Redis, delivery is local to this
process.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Set

import redis
from fastapi import WebSocket

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "rooms:"


def video_room(video_id: int | str) -> str:
    return f"video:{video_id}"


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


class RoomBroadcaster:
    """Tracks which sockets are in which rooms and delivers published events."""

    def __init__(self, redis_client: redis.Redis | None = None, max_connections: int = 15000):
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._redis = redis_client
        self._loop: asyncio.AbstractEventLoop | None = None
        self._listener_task: asyncio.Task | None = None
        self._running = False
        self._max_connections = max_connections

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bind to the running loop and, with Redis, start relaying published messages."""
        self._loop = asyncio.get_running_loop()
        if self._redis is None or self._running:
            return
        self._running = True
        self._listener_task = asyncio.create_task(self._redis_listener())
        logger.info("Redis room listener started")

    async def stop(self) -> None:
        self._running = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        self._loop = None
        logger.info("Room broadcaster stopped")

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket) -> bool:
        """Accept a socket. Returns False if the connection limit is reached."""
        if len(self._connections) >= self._max_connections:
            logger.warning(f"Connection limit reached ({self._max_connections}), rejecting connection")
            return False
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        return True

    async def join(self, websocket: WebSocket, room: str) -> None:
        async with self._lock:
            self.rooms.setdefault(room, set()).add(websocket)
        logger.debug(f"Socket joined {room} ({len(self.rooms[room])} members)")

    async def leave(self, websocket: WebSocket, room: str) -> None:
        async with self._lock:
            self._discard(websocket, room)

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a socket from every room it joined."""
        async with self._lock:
            self._connections.discard(websocket)
            for room in list(self.rooms):
                self._discard(websocket, room)

    def _discard(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def room_size(self, room: str) -> int:
        return len(self.rooms.get(room, ()))

    def get_connection_count(self) -> int:
        return len(self._connections)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def publish(self, room: str, event: str, data: Any) -> None:
        """
        Fire-and-forget delivery of ``event`` to everyone in ``room``.

        Safe to call from sync handlers running in the threadpool as well as
        from the event loop. Never raises and never waits for delivery.
        """
        message = {"event": event, "data": data}
        if self._redis is not None:
            try:
                self._redis.publish(CHANNEL_PREFIX + room, json.dumps(message, default=str))
                return
            except redis.RedisError as e:
                logger.warning(f"Redis publish to {room} failed, delivering locally: {e}")
        self._schedule_local(room, message)

    def _schedule_local(self, room: str, message: dict) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"No running loop, dropping {message['event']} for {room}")
            return
        if room not in self.rooms:
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            loop.create_task(self.send_to_room(room, message))
        else:
            asyncio.run_coroutine_threadsafe(self.send_to_room(room, message), loop)

    async def send_to_room(self, room: str, message: dict) -> None:
        """Send to every socket in ``room``; sockets that fail are dropped everywhere."""
        # Copy so joins/leaves during the sends don't break iteration
        members = list(self.rooms.get(room, ()))
        failed = []

        for websocket in members:
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.info(f"Dropping socket from {room} after send failure: {e}")
                failed.append(websocket)

        for websocket in failed:
            await self.disconnect(websocket)

    async def _redis_listener(self) -> None:
        """Relay ``rooms:*`` messages from Redis to local sockets."""
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        pubsub.psubscribe(CHANNEL_PREFIX + "*")

        try:
            while self._running:
                try:
                    message = pubsub.get_message()
                except redis.RedisError as e:
                    logger.error(f"Redis listener error: {e}")
                    await asyncio.sleep(1.0)
                    continue

                if not message or message["type"] != "pmessage":
                    # Small sleep to prevent busy-waiting
                    await asyncio.sleep(0.02)
                    continue

                room = message["channel"][len(CHANNEL_PREFIX):]
                try:
                    payload = json.loads(message["data"])
                except (TypeError, ValueError) as e:
                    logger.error(f"Discarding malformed room message on {room}: {e}")
                    continue
                if room in self.rooms:
                    await self.send_to_room(room, payload)
        finally:
            try:
                pubsub.punsubscribe(CHANNEL_PREFIX + "*")
                pubsub.close()
            except redis.RedisError as e:
                logger.error(f"Error closing Redis Pub/Sub: {e}")
