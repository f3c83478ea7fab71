# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Three-tier read resolution for the dashboard HTTP surface.

Resolution Order:
    1. LIVE: the aggregator's in-memory state, when that source holds data.
    2. HISTORICAL: a direct query against the history store.
    3. SYNTHETIC: deterministic demo data from ``mock_data``.

The tier is chosen by whether a source has data at all, not by whether a
filter applied to it matched anything. A historical query that raises or
returns nothing falls through to synthetic data; no tier is retried once an
earlier one has answered. Every result records exactly one source.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Generic, TypeVar

from omnidash.aggregators.enums import EnumTimeWindow
from omnidash.aggregators.intelligence_aggregator import (
    IntelligenceAggregator,
    PerformanceStatsState,
)
from omnidash.events.models import (
    AgentAction,
    AgentMetricsView,
    PerformanceMetric,
    PerformanceStatsView,
    RoutingDecision,
    TransformationEvent,
)
from omnidash.services import mock_data
from omnidash.storage.intelligence_history_store import IntelligenceHistoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_LIST_LIMIT = 1000

_SUMMARY_WINDOWS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


class EnumDataSource(StrEnum):
    """Tier that answered a read."""

    LIVE = "live"
    HISTORICAL = "historical"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class TieredResult(Generic[T]):
    """Read result attributed to exactly one tier."""

    data: T
    source: EnumDataSource

    @property
    def is_synthetic(self) -> bool:
        return self.source is EnumDataSource.SYNTHETIC


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Recent performance samples plus the running aggregate."""

    metrics: list[PerformanceMetric]
    stats: PerformanceStatsView


def clamp_limit(limit: int | None, default: int, maximum: int = MAX_LIST_LIMIT) -> int:
    """Clamp a caller-supplied list limit to ``1..maximum``."""
    if limit is None or limit <= 0:
        return default
    return min(limit, maximum)


def stats_from_samples(metrics: Sequence[PerformanceMetric]) -> PerformanceStatsView:
    """Fold a sample list into the same aggregate the live path maintains."""
    state = PerformanceStatsState()
    for metric in metrics:
        state.total_queries += 1
        if metric.cache_hit:
            state.cache_hit_count += 1
        state.total_routing_duration += metric.routing_duration_ms
    if state.total_queries:
        state.avg_routing_duration = state.total_routing_duration / state.total_queries
    return state.to_view()


class FallbackQueryService:
    """Answers dashboard reads from the first tier that has data.

    Example:
        >>> service = FallbackQueryService(aggregator, store=None)
        >>> result = await service.get_recent_actions(limit=10)
        >>> result.is_synthetic
        True
    """

    def __init__(
        self,
        aggregator: IntelligenceAggregator,
        store: IntelligenceHistoryStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    async def _resolve(
        self,
        operation: str,
        live: T | None,
        historical: Callable[[IntelligenceHistoryStore], Awaitable[T]] | None,
        synthetic: Callable[[datetime], T],
    ) -> TieredResult[T]:
        if live is not None:
            return TieredResult(live, EnumDataSource.LIVE)

        if self._store is not None and historical is not None:
            try:
                rows = await historical(self._store)
            except Exception as e:
                logger.warning(
                    "Historical query failed, using synthetic data",
                    extra={"operation": operation, "error": str(e)},
                )
            else:
                if rows:
                    return TieredResult(rows, EnumDataSource.HISTORICAL)
                logger.debug(
                    "Historical query empty, using synthetic data",
                    extra={"operation": operation},
                )

        return TieredResult(synthetic(self._clock()), EnumDataSource.SYNTHETIC)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_agent_summary(
        self, time_window: str = "24h"
    ) -> TieredResult[list[AgentMetricsView]]:
        """Per-agent metrics. The window applies to the historical tier only."""
        live = self._aggregator.get_agent_metrics() or None
        window = _SUMMARY_WINDOWS.get(time_window, _SUMMARY_WINDOWS["24h"])

        async def historical(store: IntelligenceHistoryStore) -> list[AgentMetricsView]:
            now = self._clock()
            return [
                AgentMetricsView(
                    agent=row.agent,
                    total_requests=row.total_requests,
                    success_rate=row.avg_confidence if row.avg_confidence > 0 else None,
                    avg_routing_time=row.avg_routing_time,
                    avg_confidence=row.avg_confidence,
                    last_seen=now,
                )
                for row in await store.fetch_agent_summary(window, 50)
            ]

        return await self._resolve(
            "agent_summary", live, historical, mock_data.mock_agent_metrics
        )

    async def get_recent_actions(
        self, limit: int | None = None
    ) -> TieredResult[list[AgentAction]]:
        limit = clamp_limit(limit, 100)
        live = self._aggregator.get_recent_actions(limit) or None

        async def historical(store: IntelligenceHistoryStore) -> list[AgentAction]:
            return await store.fetch_recent_actions(limit)

        return await self._resolve(
            "recent_actions",
            live,
            historical,
            lambda now: mock_data.mock_recent_actions(now)[:limit],
        )

    async def get_actions_by_agent(
        self,
        agent_name: str,
        time_window: str = "1h",
        limit: int | None = None,
    ) -> TieredResult[list[AgentAction]]:
        limit = clamp_limit(limit, 100)
        window = EnumTimeWindow.parse(time_window)
        live = (
            self._aggregator.get_actions_by_agent(agent_name, window)[:limit]
            if self._aggregator.recent_actions_count
            else None
        )

        def matching(actions: Sequence[AgentAction], now: datetime) -> list[AgentAction]:
            since = now - window.delta
            return [
                a for a in actions if a.agent_name == agent_name and a.created_at >= since
            ][:limit]

        async def historical(store: IntelligenceHistoryStore) -> list[AgentAction]:
            return matching(await store.fetch_recent_actions(MAX_LIST_LIMIT), self._clock())

        return await self._resolve(
            "actions_by_agent",
            live,
            historical,
            lambda now: matching(mock_data.mock_recent_actions(now), now),
        )

    async def get_routing_decisions(
        self,
        agent: str | None = None,
        min_confidence: float | None = None,
        limit: int | None = None,
    ) -> TieredResult[list[RoutingDecision]]:
        limit = clamp_limit(limit, 100)
        live = (
            self._aggregator.get_routing_decisions(agent, min_confidence)[:limit]
            if self._aggregator.get_routing_decisions()
            else None
        )

        async def historical(store: IntelligenceHistoryStore) -> list[RoutingDecision]:
            return await store.fetch_recent_routing_decisions(limit, agent, min_confidence)

        def synthetic(now: datetime) -> list[RoutingDecision]:
            return [
                d
                for d in mock_data.mock_routing_decisions(now)
                if (not agent or d.selected_agent == agent)
                and (min_confidence is None or d.confidence_score >= min_confidence)
            ][:limit]

        return await self._resolve("routing_decisions", live, historical, synthetic)

    async def get_recent_transformations(
        self, limit: int | None = None
    ) -> TieredResult[list[TransformationEvent]]:
        limit = clamp_limit(limit, 50, maximum=500)
        live = self._aggregator.get_recent_transformations(limit) or None

        async def historical(
            store: IntelligenceHistoryStore,
        ) -> list[TransformationEvent]:
            return await store.fetch_recent_transformations(limit)

        return await self._resolve(
            "recent_transformations",
            live,
            historical,
            lambda now: mock_data.mock_transformations(now)[:limit],
        )

    async def get_performance_metrics(
        self, limit: int | None = None
    ) -> TieredResult[PerformanceSnapshot]:
        limit = clamp_limit(limit, 100)
        samples = self._aggregator.get_performance_metrics(limit)
        live = (
            PerformanceSnapshot(samples, self._aggregator.get_performance_stats())
            if samples
            else None
        )

        async def historical(store: IntelligenceHistoryStore) -> PerformanceSnapshot | None:
            rows = await store.fetch_performance_metrics(limit)
            return PerformanceSnapshot(rows, stats_from_samples(rows)) if rows else None

        def synthetic(now: datetime) -> PerformanceSnapshot:
            rows = mock_data.mock_performance_metrics(now)[:limit]
            return PerformanceSnapshot(rows, stats_from_samples(rows))

        return await self._resolve("performance_metrics", live, historical, synthetic)

    async def get_execution_trace(
        self, correlation_id: str
    ) -> TieredResult[dict[str, Any]] | None:
        """Routing decision, ordered actions and summary for one correlation id.

        Returns:
            The trace, or None when no routing decision exists for the id.
        """
        if correlation_id.startswith(mock_data.MOCK_CORRELATION_PREFIX):
            trace = mock_data.mock_execution_traces(self._clock()).get(correlation_id)
            return TieredResult(trace, EnumDataSource.SYNTHETIC) if trace else None

        if self._store is None:
            return None

        try:
            decisions = await self._store.fetch_routing_decisions_for_correlation(
                correlation_id
            )
            if not decisions:
                return None
            actions = await self._store.fetch_actions_for_correlation(correlation_id)
        except Exception as e:
            logger.warning(
                "Execution trace query failed",
                extra={"correlation_id": correlation_id, "error": str(e)},
            )
            return None

        return TieredResult(
            build_execution_trace(correlation_id, decisions[0], actions),
            EnumDataSource.HISTORICAL,
        )


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def build_execution_trace(
    correlation_id: str,
    decision: dict[str, Any],
    actions: Sequence[AgentAction],
) -> dict[str, Any]:
    """Assemble the execution trace payload from stored rows."""
    routing_time_ms = decision.get("routing_time_ms") or 0
    total_duration = sum(a.duration_ms for a in actions) + routing_time_ms
    started_at = decision.get("created_at")
    ended_at = actions[-1].created_at if actions else started_at
    actual_success = decision.get("actual_success")

    return {
        "correlationId": correlation_id,
        "routingDecision": {
            "userRequest": decision.get("user_request"),
            "selectedAgent": decision.get("selected_agent"),
            "confidenceScore": float(decision.get("confidence_score") or 0),
            "routingStrategy": decision.get("routing_strategy"),
            "routingTimeMs": routing_time_ms,
            "timestamp": _iso(started_at),
            "actualSuccess": actual_success,
            "alternatives": decision.get("alternatives") or [],
            "reasoning": decision.get("reasoning"),
            "triggerConfidence": _optional_float(decision.get("trigger_confidence")),
            "contextConfidence": _optional_float(decision.get("context_confidence")),
            "capabilityConfidence": _optional_float(decision.get("capability_confidence")),
            "historicalConfidence": _optional_float(decision.get("historical_confidence")),
        },
        "actions": [
            {
                "id": action.id,
                "actionType": action.action_type,
                "actionName": action.action_name,
                "actionDetails": action.action_details,
                "durationMs": action.duration_ms,
                "timestamp": action.created_at.isoformat(),
                "status": "failed" if action.action_type == "error" else "success",
            }
            for action in actions
        ],
        "summary": {
            "totalActions": len(actions),
            "totalDuration": total_duration,
            "status": "failed" if actual_success is False else "success",
            "startTime": _iso(started_at),
            "endTime": _iso(ended_at),
        },
    }


__all__ = [
    "EnumDataSource",
    "FallbackQueryService",
    "PerformanceSnapshot",
    "TieredResult",
    "build_execution_trace",
    "clamp_limit",
    "stats_from_samples",
]
