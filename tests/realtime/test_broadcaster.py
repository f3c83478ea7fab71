"""Tests for FanoutBroadcaster and per-client sinks.

WebSockets are mocked with AsyncMock send/receive methods.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocketDisconnect

from omnidash.events.models import RoutingDecision
from omnidash.lib.notification_bus import EnumNotificationType, NotificationBus
from omnidash.realtime import ConfigRealtime, FanoutBroadcaster, build_frame


def fake_websocket(**send_kwargs: Any) -> MagicMock:
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock(**send_kwargs)
    websocket.receive_text = AsyncMock()
    return websocket


def sent_frames(websocket: MagicMock) -> list[dict[str, Any]]:
    return [call.args[0] for call in websocket.send_json.await_args_list]


async def wait_until(predicate: Callable[[], bool]) -> None:
    for _ in range(200):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition not reached")


@pytest.fixture
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture
def broadcaster(bus: NotificationBus) -> FanoutBroadcaster:
    broadcaster = FanoutBroadcaster(ConfigRealtime(), bus)
    broadcaster.start()
    return broadcaster


class TestBuildFrame:
    def test_frame_shape(self, make_decision: Callable[..., RoutingDecision]) -> None:
        frame = build_frame(EnumNotificationType.ROUTING_UPDATE, make_decision())

        assert set(frame) == {"topic", "event", "timestamp"}
        assert frame["topic"] == "routingUpdate"
        assert frame["event"]["selectedAgent"] == "agent-api"
        assert frame["event"]["confidenceScore"] == 0.9


class TestConnection:
    async def test_welcome_frame_precedes_notifications(
        self, broadcaster: FanoutBroadcaster, bus: NotificationBus
    ) -> None:
        websocket = fake_websocket()

        sink = await broadcaster.connect(websocket)
        bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "a-1"})
        await wait_until(lambda: sink.frames_sent == 1)

        welcome, frame = sent_frames(websocket)
        websocket.accept.assert_awaited_once()
        assert welcome == {
            "type": "connected",
            "message": "Connected to Omnidash real-time event stream",
        }
        assert frame["topic"] == "actionUpdate"
        assert frame["event"] == {"id": "a-1"}
        await broadcaster.stop()

    async def test_no_replay_for_new_clients(
        self, broadcaster: FanoutBroadcaster, bus: NotificationBus
    ) -> None:
        bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "before"})
        websocket = fake_websocket()

        sink = await broadcaster.connect(websocket)
        bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "after"})
        await wait_until(lambda: sink.frames_sent == 1)

        assert [f.get("event") for f in sent_frames(websocket)[1:]] == [{"id": "after"}]
        await broadcaster.stop()

    async def test_lifecycle_notifications_are_not_relayed(
        self, broadcaster: FanoutBroadcaster, bus: NotificationBus
    ) -> None:
        await broadcaster.connect(fake_websocket())

        assert bus.publish(EnumNotificationType.ERROR, "boom") == 0
        await broadcaster.stop()

    async def test_every_client_receives_every_frame(
        self, broadcaster: FanoutBroadcaster, bus: NotificationBus
    ) -> None:
        first, second = fake_websocket(), fake_websocket()
        sinks = [await broadcaster.connect(first), await broadcaster.connect(second)]

        bus.publish(EnumNotificationType.ROUTING_UPDATE, {"n": 1})
        bus.publish(EnumNotificationType.PERFORMANCE_UPDATE, {"n": 2})
        await wait_until(lambda: all(s.frames_sent == 2 for s in sinks))

        for websocket in (first, second):
            assert [f["topic"] for f in sent_frames(websocket)[1:]] == [
                "routingUpdate",
                "performanceUpdate",
            ]
        assert broadcaster.connection_count == 2
        await broadcaster.stop()


class TestBackpressure:
    async def test_full_queue_drops_frames_for_that_client_only(
        self, bus: NotificationBus
    ) -> None:
        broadcaster = FanoutBroadcaster(ConfigRealtime(client_queue_size=1), bus)
        broadcaster.start()
        slow = await broadcaster.connect(fake_websocket())
        broadcaster._config = ConfigRealtime(client_queue_size=10)
        fast = await broadcaster.connect(fake_websocket())

        delivered = [broadcaster.broadcast({"n": n}) for n in range(3)]

        assert delivered == [2, 1, 1]
        assert slow.frames_dropped == 2
        assert fast.frames_dropped == 0
        await wait_until(lambda: fast.frames_sent == 3)
        assert broadcaster.connection_count == 2
        await broadcaster.stop()

    async def test_failed_send_disconnects_client(
        self, broadcaster: FanoutBroadcaster, bus: NotificationBus
    ) -> None:
        broken = fake_websocket(side_effect=[None, RuntimeError("socket closed")])
        healthy = fake_websocket()
        broken_sink = await broadcaster.connect(broken)
        healthy_sink = await broadcaster.connect(healthy)

        bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "a-1"})
        await wait_until(lambda: broadcaster.connection_count == 1)

        assert broken_sink.closed is True
        assert broken_sink.offer({"n": 1}) is False
        await wait_until(lambda: healthy_sink.frames_sent == 1)
        await broadcaster.stop()

    async def test_send_timeout_disconnects_client(self, bus: NotificationBus) -> None:
        async def stalled(frame: dict[str, Any]) -> None:
            if "topic" in frame:
                await asyncio.sleep(5)

        broadcaster = FanoutBroadcaster(ConfigRealtime(send_timeout_seconds=0.05), bus)
        broadcaster.start()
        sink = await broadcaster.connect(fake_websocket(side_effect=stalled))

        bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "a-1"})
        await wait_until(lambda: broadcaster.connection_count == 0)

        assert sink.closed is True
        assert sink.frames_sent == 0
        await broadcaster.stop()


class TestServe:
    async def test_serve_handles_messages_until_disconnect(
        self, broadcaster: FanoutBroadcaster
    ) -> None:
        websocket = fake_websocket()
        websocket.receive_text.side_effect = [
            json.dumps({"action": "subscribe", "topics": ["agent-actions"]}),
            "{not json",
            json.dumps(["unexpected"]),
            WebSocketDisconnect(code=1000),
        ]

        await broadcaster.serve(websocket)

        assert websocket.receive_text.await_count == 4
        assert broadcaster.connection_count == 0

    async def test_stop_unsubscribes_and_disconnects(
        self, broadcaster: FanoutBroadcaster, bus: NotificationBus
    ) -> None:
        sink = await broadcaster.connect(fake_websocket())

        await broadcaster.stop()

        assert broadcaster.connection_count == 0
        assert sink.closed is True
        assert bus.listener_count() == 0

    def test_start_is_idempotent(
        self, broadcaster: FanoutBroadcaster, bus: NotificationBus
    ) -> None:
        before = bus.listener_count()

        broadcaster.start()

        assert bus.listener_count() == before
