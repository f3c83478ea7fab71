# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Kafka consumer for agent observability events.

Subscribes to the routing decision, agent action, transformation and
performance metric topics and feeds every message, one at a time, through
the IntelligenceAggregator.

Resilience:
    - Hydration first: persisted history is replayed into the aggregator
      before the subscription is attached, so dashboards are non-empty
      immediately. A hydration failure leaves the aggregator empty.
    - Parse errors: malformed messages become a typed skip and are counted;
      the loop continues.
    - Transport errors: a KafkaError raised while consuming is logged,
      published as an ``error`` notification, and consumption resumes after
      a backoff. Only stop() or cancellation ends the loop.
    - Loop failure: if the background task dies on anything else, the error
      is logged and published, and the consumer reports itself unhealthy.

Architecture:
    ```
    Kafka Topics (routing/actions/transformations/performance)
           |
           v
    IntelligenceEventConsumer --(normalize_event)--> ParsedEvent | SkippedMessage
           |
           v (apply)
    IntelligenceAggregator --(NotificationBus)--> FanoutBroadcaster
    ```

Example:
    >>> consumer = IntelligenceEventConsumer(config, aggregator)
    >>> async with consumer:
    ...     await consumer.run()
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from omnidash.aggregators.enums import EnumHealthStatus
from omnidash.consumers.config import ConfigIntelligenceConsumer
from omnidash.events.normalization import SkippedMessage, normalize_event
from omnidash.lib.notification_bus import EnumNotificationType

if TYPE_CHECKING:
    from omnidash.aggregators.intelligence_aggregator import IntelligenceAggregator
    from omnidash.storage.hydration_loader import HydrationLoader

logger = logging.getLogger(__name__)


# =============================================================================
# Consumer Metrics
# =============================================================================


class ConsumerMetrics:
    """Metrics tracking for the intelligence event consumer.

    Attributes:
        messages_received: Total messages received from Kafka.
        messages_processed: Messages applied to the aggregator.
        messages_skipped: Messages dropped (malformed or duplicate).
        messages_failed: Messages whose processing raised.
        transport_errors: Kafka errors raised by the consume loop.
        last_message_at: Timestamp of last received message.
    """

    def __init__(self) -> None:
        self.messages_received: int = 0
        self.messages_processed: int = 0
        self.messages_skipped: int = 0
        self.messages_failed: int = 0
        self.transport_errors: int = 0
        self.last_message_at: datetime | None = None
        self._lock = asyncio.Lock()

    async def record_received(self) -> None:
        async with self._lock:
            self.messages_received += 1
            self.last_message_at = datetime.now(UTC)

    async def record_processed(self) -> None:
        async with self._lock:
            self.messages_processed += 1

    async def record_skipped(self) -> None:
        async with self._lock:
            self.messages_skipped += 1

    async def record_failed(self) -> None:
        async with self._lock:
            self.messages_failed += 1

    async def record_transport_error(self) -> None:
        async with self._lock:
            self.transport_errors += 1

    async def snapshot(self) -> dict[str, object]:
        """Get a snapshot of current metrics."""
        async with self._lock:
            return {
                "messages_received": self.messages_received,
                "messages_processed": self.messages_processed,
                "messages_skipped": self.messages_skipped,
                "messages_failed": self.messages_failed,
                "transport_errors": self.transport_errors,
                "last_message_at": (
                    self.last_message_at.isoformat() if self.last_message_at else None
                ),
            }


# =============================================================================
# Intelligence Event Consumer
# =============================================================================


class IntelligenceEventConsumer:
    """Kafka consumer that drives the intelligence aggregator.

    Message handling is strictly sequential: one message is normalized,
    applied and its notification delivered before the next one is read.
    The aggregator therefore never needs locking.

    Attributes:
        metrics: Consumer metrics for observability.
        is_running: Whether the consumer is currently running.
    """

    def __init__(
        self,
        config: ConfigIntelligenceConsumer,
        aggregator: IntelligenceAggregator,
        hydration_loader: HydrationLoader | None = None,
    ) -> None:
        """Initialize the intelligence event consumer.

        Args:
            config: Consumer configuration (brokers, group, topics).
            aggregator: Aggregator that owns the in-memory state. Lifecycle
                notifications are published on its notification bus.
            hydration_loader: Optional loader used to seed the aggregator
                from persisted history on start().
        """
        self._config = config
        self._aggregator = aggregator
        self._notifications = aggregator.notifications
        self._hydration_loader = hydration_loader
        self._consumer: AIOKafkaConsumer | None = None
        self._running = False
        self._task: asyncio.Task[None] | None = None

        self.metrics = ConsumerMetrics()

        self._consumer_id = f"intelligence-consumer-{uuid4().hex[:8]}"

        logger.info(
            "IntelligenceEventConsumer initialized",
            extra={
                "consumer_id": self._consumer_id,
                "topics": self._config.topics,
                "group_id": self._config.group_id,
                "bootstrap_servers": self._config.bootstrap_servers,
            },
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def consumer_id(self) -> str:
        return self._consumer_id

    # =========================================================================
    # Lifecycle Methods
    # =========================================================================

    async def start(self) -> None:
        """Hydrate the aggregator, then connect to Kafka.

        Raises:
            KafkaError: If connection to Kafka fails. The aggregator keeps
                whatever hydration produced.
        """
        if self._running:
            logger.warning(
                "Consumer already running",
                extra={"consumer_id": self._consumer_id},
            )
            return

        correlation_id = uuid4()

        logger.info(
            "Starting IntelligenceEventConsumer",
            extra={
                "consumer_id": self._consumer_id,
                "correlation_id": str(correlation_id),
                "topics": self._config.topics,
            },
        )

        await self._hydrate(correlation_id)

        try:
            self._consumer = AIOKafkaConsumer(
                *self._config.topics,
                bootstrap_servers=self._config.bootstrap_servers,
                group_id=self._config.group_id,
                client_id=self._config.client_id,
                auto_offset_reset=self._config.auto_offset_reset,
                enable_auto_commit=self._config.enable_auto_commit,
                max_poll_records=self._config.max_poll_records,
            )
            await self._consumer.start()
        except KafkaError as e:
            logger.exception(
                "Failed to start consumer",
                extra={
                    "consumer_id": self._consumer_id,
                    "correlation_id": str(correlation_id),
                    "error": str(e),
                },
            )
            self._consumer = None
            self._notifications.publish(EnumNotificationType.ERROR, e)
            raise

        self._running = True
        self._notifications.publish(
            EnumNotificationType.CONNECTED, {"consumer_id": self._consumer_id}
        )

        logger.info(
            "IntelligenceEventConsumer started",
            extra={
                "consumer_id": self._consumer_id,
                "correlation_id": str(correlation_id),
                "group_id": self._config.group_id,
            },
        )

    def start_background(self) -> asyncio.Task[None]:
        """Schedule run() as a background task owned by this consumer."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(
                self.run(), name=f"{self._consumer_id}-loop"
            )
            self._task.add_done_callback(self._on_task_done)
        return self._task

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return

        self._running = False
        logger.error(
            "Consume loop terminated unexpectedly",
            exc_info=error,
            extra={"consumer_id": self._consumer_id, "error": str(error)},
        )
        self._notifications.publish(EnumNotificationType.ERROR, error)

    async def stop(self) -> None:
        """Stop the consume loop, then disconnect from Kafka.

        Safe to call multiple times, including after the background loop
        has died on its own.
        """
        if not self._running and self._consumer is None and self._task is None:
            logger.debug(
                "Consumer not running, nothing to stop",
                extra={"consumer_id": self._consumer_id},
            )
            return

        self._running = False

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._consumer is not None:
            try:
                await self._consumer.stop()
            except Exception as e:
                logger.warning(
                    "Error stopping Kafka consumer",
                    extra={"consumer_id": self._consumer_id, "error": str(e)},
                )
            finally:
                self._consumer = None

        self._notifications.publish(
            EnumNotificationType.DISCONNECTED, {"consumer_id": self._consumer_id}
        )

        metrics_snapshot = await self.metrics.snapshot()
        logger.info(
            "IntelligenceEventConsumer stopped",
            extra={
                "consumer_id": self._consumer_id,
                "final_metrics": metrics_snapshot,
            },
        )

    async def run(self) -> None:
        """Run the consume loop until stop() is called.

        Raises:
            RuntimeError: If start() has not been called.
        """
        if not self._running or self._consumer is None:
            raise RuntimeError("Consumer not started. Call start() before run().")

        correlation_id = uuid4()
        logger.info(
            "Starting consume loop",
            extra={
                "consumer_id": self._consumer_id,
                "correlation_id": str(correlation_id),
            },
        )
        await self._consume_loop(correlation_id)

    async def __aenter__(self) -> IntelligenceEventConsumer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.stop()

    # =========================================================================
    # Consume Loop
    # =========================================================================

    async def _consume_loop(self, correlation_id: UUID) -> None:
        try:
            while self._running and self._consumer is not None:
                try:
                    async for message in self._consumer:
                        if not self._running:
                            break
                        await self._handle_message(message)
                    else:
                        # Iterator exhausted: the client was stopped underneath us.
                        break
                except KafkaError as e:
                    await self.metrics.record_transport_error()
                    logger.exception(
                        "Kafka error in consume loop, backing off",
                        extra={
                            "consumer_id": self._consumer_id,
                            "correlation_id": str(correlation_id),
                            "retry_backoff_seconds": self._config.retry_backoff_seconds,
                            "error": str(e),
                        },
                    )
                    self._notifications.publish(EnumNotificationType.ERROR, e)
                    await asyncio.sleep(self._config.retry_backoff_seconds)
        except asyncio.CancelledError:
            logger.info(
                "Consume loop cancelled",
                extra={
                    "consumer_id": self._consumer_id,
                    "correlation_id": str(correlation_id),
                },
            )
            raise
        finally:
            logger.info(
                "Consume loop exiting",
                extra={
                    "consumer_id": self._consumer_id,
                    "correlation_id": str(correlation_id),
                },
            )

    async def _handle_message(self, message: Any) -> None:
        """Normalize and apply one message. Never raises for bad input."""
        await self.metrics.record_received()

        topic = getattr(message, "topic", "unknown")

        try:
            result = normalize_event(topic, getattr(message, "value", None))
            if isinstance(result, SkippedMessage):
                await self.metrics.record_skipped()
                logger.warning(
                    "Message skipped",
                    extra={
                        "consumer_id": self._consumer_id,
                        "topic": result.topic,
                        "partition": getattr(message, "partition", None),
                        "offset": getattr(message, "offset", None),
                        "reason": result.reason,
                        "error": result.error,
                    },
                )
                return

            applied = self._aggregator.apply(result)
        except Exception as e:
            await self.metrics.record_failed()
            logger.exception(
                "Error processing message",
                extra={
                    "consumer_id": self._consumer_id,
                    "topic": topic,
                    "partition": getattr(message, "partition", None),
                    "offset": getattr(message, "offset", None),
                    "error": str(e),
                },
            )
            return

        if applied:
            await self.metrics.record_processed()
        else:
            await self.metrics.record_skipped()

    async def _hydrate(self, correlation_id: UUID) -> None:
        if self._hydration_loader is None:
            return

        result = await self._hydration_loader.load()
        if not result.loaded:
            logger.warning(
                "Hydration unavailable, starting with empty state",
                extra={
                    "consumer_id": self._consumer_id,
                    "correlation_id": str(correlation_id),
                    "error": result.error,
                },
            )
            return

        self._aggregator.hydrate(result.actions, result.agent_seeds)

    # =========================================================================
    # Health Check
    # =========================================================================

    def get_health_status(self) -> dict[str, object]:
        """Status snapshot for the read API.

        ``events_processed`` is the number of agents currently tracked, which
        is what the dashboard health card has always displayed.
        """
        return {
            "status": (
                EnumHealthStatus.HEALTHY if self._running else EnumHealthStatus.UNHEALTHY
            ).value,
            "events_processed": self._aggregator.tracked_agent_count,
            "recent_actions_count": self._aggregator.recent_actions_count,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def health_check(self) -> dict[str, object]:
        """Check consumer health status.

        Returns:
            Dictionary with running flag, identifiers and a metrics snapshot.
        """
        metrics_snapshot = await self.metrics.snapshot()

        return {
            "healthy": self._running,
            "running": self._running,
            "consumer_id": self._consumer_id,
            "group_id": self._config.group_id,
            "topics": self._config.topics,
            "duplicates_dropped": self._aggregator.duplicates_dropped,
            "metrics": metrics_snapshot,
        }


__all__ = [
    "ConsumerMetrics",
    "IntelligenceEventConsumer",
]
