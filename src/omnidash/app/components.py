# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Component wiring for the dashboard application.

Builds the long-lived components selected by the feature flags in
``Settings`` and owns their startup/shutdown order. Startup never fails on
an unavailable dependency: each component that cannot start is logged and
left in its stopped state, and the read API degrades to the remaining tiers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from omnidash.aggregators.config import ConfigIntelligenceAggregator
from omnidash.aggregators.intelligence_aggregator import IntelligenceAggregator
from omnidash.clients.config import ConfigIntelligenceClient
from omnidash.clients.intelligence_event_client import IntelligenceEventClient
from omnidash.config.settings import Settings
from omnidash.consumers.config import ConfigIntelligenceConsumer
from omnidash.consumers.intelligence_event_consumer import IntelligenceEventConsumer
from omnidash.lib.notification_bus import NotificationBus
from omnidash.realtime.broadcaster import FanoutBroadcaster
from omnidash.realtime.config import ConfigRealtime
from omnidash.services.fallback_query import FallbackQueryService
from omnidash.storage.config import ConfigHistoryStorage
from omnidash.storage.hydration_loader import HydrationLoader
from omnidash.storage.intelligence_history_store import IntelligenceHistoryStore

logger = logging.getLogger(__name__)


@dataclass
class AppComponents:
    """Everything the HTTP and socket handlers read from.

    Optional members are None when their feature flag is off.
    """

    aggregator: IntelligenceAggregator
    queries: FallbackQueryService
    store: IntelligenceHistoryStore | None = None
    consumer: IntelligenceEventConsumer | None = None
    client: IntelligenceEventClient | None = None
    broadcaster: FanoutBroadcaster | None = None
    hydration_loader: HydrationLoader | None = None

    @property
    def notifications(self) -> NotificationBus:
        return self.aggregator.notifications


def build_components(settings: Settings) -> AppComponents:
    """Construct (but do not start) the components enabled in settings."""
    aggregator = IntelligenceAggregator(ConfigIntelligenceAggregator())

    store = None
    hydration_loader = None
    if settings.enable_postgres:
        store = IntelligenceHistoryStore(ConfigHistoryStorage())
        if settings.enable_event_preload:
            hydration_loader = HydrationLoader(store)

    consumer = None
    if settings.enable_event_consumer:
        consumer = IntelligenceEventConsumer(
            ConfigIntelligenceConsumer(),
            aggregator,
            hydration_loader=hydration_loader,
        )

    client = None
    if settings.enable_intelligence_requests:
        client = IntelligenceEventClient(ConfigIntelligenceClient())

    broadcaster = None
    if settings.enable_real_time_events:
        realtime_config = ConfigRealtime()
        if realtime_config.enabled:
            broadcaster = FanoutBroadcaster(realtime_config, aggregator.notifications)

    return AppComponents(
        aggregator=aggregator,
        queries=FallbackQueryService(aggregator, store),
        store=store,
        consumer=consumer,
        client=client,
        broadcaster=broadcaster,
        hydration_loader=hydration_loader,
    )


async def start_components(components: AppComponents) -> None:
    """Start components in dependency order.

    The broadcaster subscribes first so clients connected during hydration
    see the initial metric snapshot.
    """
    if components.broadcaster is not None:
        components.broadcaster.start()

    if components.consumer is not None:
        try:
            # Hydration runs inside start(), before the subscription attaches.
            await components.consumer.start()
            components.consumer.start_background()
        except Exception as e:
            logger.error(
                "Event consumer failed to start, serving without live updates",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
    elif components.hydration_loader is not None:
        result = await components.hydration_loader.load()
        if result.loaded:
            components.aggregator.hydrate(result.actions, result.agent_seeds)

    if components.client is not None:
        try:
            await components.client.start()
        except Exception as e:
            logger.warning(
                "Intelligence client failed to start, will retry on first request",
                extra={"error": str(e), "error_type": type(e).__name__},
            )


async def stop_components(components: AppComponents) -> None:
    """Stop components in reverse order of start."""
    if components.client is not None:
        await components.client.stop()
    if components.consumer is not None:
        await components.consumer.stop()
    if components.broadcaster is not None:
        await components.broadcaster.stop()
    if components.store is not None:
        await components.store.close()


__all__ = [
    "AppComponents",
    "build_components",
    "start_components",
    "stop_components",
]
