# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Fanout of aggregator notifications to WebSocket clients.

One notification source, N independent sinks. Every connected client owns a
bounded frame queue drained by its own writer task, so the publisher only
ever does a non-blocking enqueue:

    - A slow client fills its own queue; further frames are dropped for that
      client only.
    - A client whose send fails or exceeds the send timeout is disconnected;
      other clients are unaffected.
    - There is no replay buffer. A newly connected client receives a welcome
      frame and then only notifications published after it joined.

Frame format (server -> client):
    {"topic": "<notification type>", "event": <camelCase payload>, "timestamp": "<ISO-8601>"}
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect

from omnidash.events.models import to_wire
from omnidash.lib.notification_bus import (
    DATA_NOTIFICATION_TYPES,
    EnumNotificationType,
    NotificationBus,
)
from omnidash.realtime.config import ConfigRealtime

logger = logging.getLogger(__name__)


def build_frame(notification_type: EnumNotificationType, payload: Any) -> dict[str, Any]:
    return {
        "topic": notification_type.value,
        "event": to_wire(payload),
        "timestamp": datetime.now(UTC).isoformat(),
    }


class ClientSink:
    """A single connected client: bounded queue plus writer task."""

    def __init__(
        self,
        websocket: WebSocket,
        queue_size: int,
        send_timeout_seconds: float,
        on_closed: Callable[[ClientSink], None],
    ) -> None:
        self.client_id = f"ws-{uuid4().hex[:8]}"
        self.websocket = websocket
        self.frames_dropped = 0
        self.frames_sent = 0
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self._send_timeout = send_timeout_seconds
        self._on_closed = on_closed
        self._closed = False
        self._writer: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain(), name=f"{self.client_id}-writer")

    def offer(self, frame: dict[str, Any]) -> bool:
        """Enqueue a frame without blocking.

        Returns:
            False if the client is closed or its queue is full.
        """
        if self._closed:
            return False
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.debug(
                "Client queue full, dropping frame",
                extra={"client_id": self.client_id, "frames_dropped": self.frames_dropped},
            )
            return False
        return True

    async def close(self) -> None:
        self._closed = True
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
        self._writer = None

    async def _drain(self) -> None:
        try:
            while True:
                frame = await self._queue.get()
                await asyncio.wait_for(
                    self.websocket.send_json(frame), timeout=self._send_timeout
                )
                self.frames_sent += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(
                "Client send failed, disconnecting",
                extra={
                    "client_id": self.client_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            self._closed = True
            self._on_closed(self)


class FanoutBroadcaster:
    """Relays aggregator data notifications to every connected client.

    Example:
        >>> broadcaster = FanoutBroadcaster(ConfigRealtime(), notifications)
        >>> broadcaster.start()
        >>> await broadcaster.serve(websocket)  # inside a WebSocket route
    """

    def __init__(self, config: ConfigRealtime, notifications: NotificationBus) -> None:
        self._config = config
        self._notifications = notifications
        self._sinks: dict[str, ClientSink] = {}
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def connection_count(self) -> int:
        return len(self._sinks)

    def start(self) -> None:
        """Subscribe to the data notification types."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._notifications.subscribe_many(
            DATA_NOTIFICATION_TYPES, self._on_notification
        )
        logger.info("FanoutBroadcaster started")

    async def stop(self) -> None:
        """Unsubscribe and disconnect every client."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for sink in list(self._sinks.values()):
            await self.disconnect(sink)
        logger.info("FanoutBroadcaster stopped")

    def broadcast(self, frame: dict[str, Any]) -> int:
        """Offer a frame to every client.

        Returns:
            Number of clients the frame was queued for.
        """
        return sum(1 for sink in list(self._sinks.values()) if sink.offer(frame))

    def _on_notification(self, notification_type: EnumNotificationType, payload: Any) -> None:
        if not self._sinks:
            return
        self.broadcast(build_frame(notification_type, payload))

    # =========================================================================
    # Client lifecycle
    # =========================================================================

    async def connect(self, websocket: WebSocket) -> ClientSink:
        """Accept a client, send the welcome frame, then register it."""
        await websocket.accept()
        await websocket.send_json(
            {"type": "connected", "message": self._config.welcome_message}
        )

        sink = ClientSink(
            websocket,
            queue_size=self._config.client_queue_size,
            send_timeout_seconds=self._config.send_timeout_seconds,
            on_closed=self._forget,
        )
        self._sinks[sink.client_id] = sink
        sink.start()

        logger.info(
            "WebSocket client connected",
            extra={"client_id": sink.client_id, "connections": self.connection_count},
        )
        return sink

    async def disconnect(self, sink: ClientSink) -> None:
        self._forget(sink)
        await sink.close()
        logger.info(
            "WebSocket client disconnected",
            extra={"client_id": sink.client_id, "connections": self.connection_count},
        )

    def _forget(self, sink: ClientSink) -> None:
        self._sinks.pop(sink.client_id, None)

    def handle_client_message(self, sink: ClientSink, raw: str) -> None:
        """Process a client -> server message.

        Subscription requests are logged and otherwise ignored: every client
        receives every topic.
        """
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(
                "Error parsing client message",
                extra={"client_id": sink.client_id, "error": str(e)},
            )
            return

        if isinstance(message, dict) and message.get("action") == "subscribe":
            logger.info(
                "Client subscription",
                extra={"client_id": sink.client_id, "topics": message.get("topics")},
            )
        else:
            logger.debug("Ignoring client message", extra={"client_id": sink.client_id})

    async def serve(self, websocket: WebSocket) -> None:
        """Run one client connection until it disconnects."""
        sink = await self.connect(websocket)
        try:
            while not sink.closed:
                raw = await websocket.receive_text()
                self.handle_client_message(sink, raw)
        except WebSocketDisconnect:
            pass
        finally:
            await self.disconnect(sink)


__all__ = [
    "ClientSink",
    "FanoutBroadcaster",
    "build_frame",
]
