"""Tests for the in-process notification bus."""

from __future__ import annotations

from typing import Any

from omnidash.lib.notification_bus import (
    DATA_NOTIFICATION_TYPES,
    EnumNotificationType,
    NotificationBus,
)


class TestNotificationBus:
    def test_publish_reaches_only_matching_listeners(self) -> None:
        bus = NotificationBus()
        actions: list[Any] = []
        routing: list[Any] = []
        bus.subscribe(EnumNotificationType.ACTION_UPDATE, lambda k, p: actions.append(p))
        bus.subscribe(EnumNotificationType.ROUTING_UPDATE, lambda k, p: routing.append(p))

        delivered = bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "a-1"})

        assert delivered == 1
        assert actions == [{"id": "a-1"}]
        assert routing == []

    def test_publish_without_listeners(self) -> None:
        bus = NotificationBus()

        assert bus.publish(EnumNotificationType.METRIC_UPDATE, []) == 0

    def test_unsubscribe_removes_listener(self) -> None:
        bus = NotificationBus()
        received: list[Any] = []
        unsubscribe = bus.subscribe(
            EnumNotificationType.ACTION_UPDATE, lambda k, p: received.append(p)
        )

        unsubscribe()
        unsubscribe()  # idempotent
        bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "a-1"})

        assert received == []
        assert bus.listener_count() == 0

    def test_failing_listener_does_not_block_others(self) -> None:
        """A raising listener is isolated from the publisher and its peers."""
        bus = NotificationBus()
        received: list[Any] = []

        def broken(kind: EnumNotificationType, payload: Any) -> None:
            raise RuntimeError("listener exploded")

        bus.subscribe(EnumNotificationType.ERROR, broken)
        bus.subscribe(EnumNotificationType.ERROR, lambda k, p: received.append(p))

        delivered = bus.publish(EnumNotificationType.ERROR, "boom")

        assert delivered == 1
        assert received == ["boom"]

    def test_subscribe_many(self) -> None:
        bus = NotificationBus()
        kinds: list[EnumNotificationType] = []
        unsubscribe = bus.subscribe_many(
            DATA_NOTIFICATION_TYPES, lambda k, p: kinds.append(k)
        )

        for kind in EnumNotificationType:
            bus.publish(kind, None)

        assert set(kinds) == DATA_NOTIFICATION_TYPES
        assert bus.listener_count() == len(DATA_NOTIFICATION_TYPES)

        unsubscribe()
        assert bus.listener_count() == 0

    def test_lifecycle_types_are_not_data_types(self) -> None:
        assert EnumNotificationType.CONNECTED not in DATA_NOTIFICATION_TYPES
        assert EnumNotificationType.DISCONNECTED not in DATA_NOTIFICATION_TYPES
        assert EnumNotificationType.ERROR not in DATA_NOTIFICATION_TYPES
