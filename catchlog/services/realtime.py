"""In-memory change feed with WebSocket fanout for realtime moderation updates."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Iterable

from fastapi import WebSocket

logger = logging.getLogger(__name__)

REPORTS_CHANNEL = "reports"
MODERATION_LOG_CHANNEL = "moderation_log"
ADMIN_CHANNELS = (REPORTS_CHANNEL, MODERATION_LOG_CHANNEL)

Listener = Callable[[dict[str, Any]], None]


def user_channel(user_id: object) -> str:
    """Per-user channel carrying that user's notifications."""

    return f"user:{user_id}"


class ChangeFeed:
    """Publishes mutation events to in-process subscribers and connected WebSockets."""

    def __init__(self) -> None:
        self._sockets: dict[str, set[WebSocket]] = {}
        self._memberships: dict[WebSocket, set[str]] = {}
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, channels: Iterable[str]) -> None:
        await websocket.accept()
        async with self._lock:
            joined = self._memberships.setdefault(websocket, set())
            for channel in channels:
                self._sockets.setdefault(channel, set()).add(websocket)
                joined.add(channel)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            channels = self._memberships.pop(websocket, set())
            for channel in channels:
                group = self._sockets.get(channel)
                if group is None:
                    continue
                group.discard(websocket)
                if not group:
                    self._sockets.pop(channel, None)

    def subscribe(self, channel: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``channel`` and return a callable that removes it."""

        self._listeners.setdefault(channel, []).append(listener)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(channel, [])
            if listener in listeners:
                listeners.remove(listener)

        return _unsubscribe

    def publish(self, channel: str, event: str, record: dict[str, Any]) -> None:
        """Emit ``event`` on ``channel``; called by services after their transaction commits."""

        message = {"channel": channel, "type": event, "record": record}
        for listener in list(self._listeners.get(channel, ())):
            try:
                listener(message)
            except Exception:
                logger.exception("Change feed listener failed for channel %s", channel)
        self._schedule_broadcast(channel, message)

    async def broadcast(self, channel: str, message: dict[str, Any]) -> None:
        payload = json.dumps(message, default=str)
        async with self._lock:
            targets = list(self._sockets.get(channel, ()))
        for connection in targets:
            try:
                await connection.send_text(payload)
            except Exception:
                await self.disconnect(connection)

    def _schedule_broadcast(self, channel: str, message: dict[str, Any]) -> None:
        if channel not in self._sockets:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self.broadcast(channel, message))


change_feed = ChangeFeed()


__all__ = [
    "REPORTS_CHANNEL",
    "MODERATION_LOG_CHANNEL",
    "ADMIN_CHANNELS",
    "user_channel",
    "ChangeFeed",
    "change_feed",
]
