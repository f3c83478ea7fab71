# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""In-process notification bus.

A small topic-keyed registry of callbacks. The aggregator publishes typed
notifications; the fanout broadcaster (and anything else in the process)
subscribes. Listeners run synchronously, in subscription order, on the
publisher's task. A failing listener is logged and does not affect the
other listeners or the publisher.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EnumNotificationType(StrEnum):
    """Notification types published on the bus."""

    # Data updates (relayed to real-time clients)
    METRIC_UPDATE = "metricUpdate"
    ACTION_UPDATE = "actionUpdate"
    ROUTING_UPDATE = "routingUpdate"
    TRANSFORMATION_UPDATE = "transformationUpdate"
    PERFORMANCE_UPDATE = "performanceUpdate"

    # Consumer lifecycle
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


DATA_NOTIFICATION_TYPES: frozenset[EnumNotificationType] = frozenset(
    {
        EnumNotificationType.METRIC_UPDATE,
        EnumNotificationType.ACTION_UPDATE,
        EnumNotificationType.ROUTING_UPDATE,
        EnumNotificationType.TRANSFORMATION_UPDATE,
        EnumNotificationType.PERFORMANCE_UPDATE,
    }
)

NotificationListener = Callable[[EnumNotificationType, Any], None]


class NotificationBus:
    """Topic-keyed publish/subscribe registry for in-process notifications.

    Example:
        >>> bus = NotificationBus()
        >>> received = []
        >>> unsubscribe = bus.subscribe(
        ...     EnumNotificationType.ACTION_UPDATE,
        ...     lambda kind, payload: received.append(payload),
        ... )
        >>> bus.publish(EnumNotificationType.ACTION_UPDATE, {"id": "a-1"})
        1
        >>> unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: dict[EnumNotificationType, list[NotificationListener]] = (
            defaultdict(list)
        )

    def subscribe(
        self,
        notification_type: EnumNotificationType,
        listener: NotificationListener,
    ) -> Callable[[], None]:
        """Register a listener for one notification type.

        Returns:
            Callable that removes the listener again.
        """
        self._listeners[notification_type].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(notification_type, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def subscribe_many(
        self,
        notification_types: Iterable[EnumNotificationType],
        listener: NotificationListener,
    ) -> Callable[[], None]:
        """Register one listener for several notification types."""
        removers = [self.subscribe(kind, listener) for kind in notification_types]

        def unsubscribe() -> None:
            for remove in removers:
                remove()

        return unsubscribe

    def publish(self, notification_type: EnumNotificationType, payload: Any) -> int:
        """Deliver a notification to every listener of its type.

        Returns:
            Number of listeners that handled the notification without raising.
        """
        delivered = 0
        for listener in list(self._listeners.get(notification_type, ())):
            try:
                listener(notification_type, payload)
                delivered += 1
            except Exception as e:
                logger.exception(
                    "Notification listener failed",
                    extra={
                        "notification_type": notification_type.value,
                        "error": str(e),
                    },
                )
        return delivered

    def listener_count(
        self, notification_type: EnumNotificationType | None = None
    ) -> int:
        """Count listeners for one type, or across all types."""
        if notification_type is not None:
            return len(self._listeners.get(notification_type, ()))
        return sum(len(listeners) for listeners in self._listeners.values())


__all__ = [
    "DATA_NOTIFICATION_TYPES",
    "EnumNotificationType",
    "NotificationBus",
    "NotificationListener",
]
