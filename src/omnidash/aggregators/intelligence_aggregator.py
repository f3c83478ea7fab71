# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Intelligence aggregator implementation.

Single owner of the in-memory agent observability state: per-agent rolling
statistics, four most-recent-first ring buffers, and the running
performance aggregate.

Key Semantics:
    - Single Writer: Mutation methods (``apply``, ``handle_*``, ``hydrate``)
      are only called from the consumer task, one message at a time. No
      locks are taken; read accessors return copies or frozen records.
    - Lazy Averages: Routing time and confidence are kept as running sums
      plus a count; means are computed on read.
    - Success Rate Proxy: successes / outcomes when any explicit
      success/error action was seen for the agent, else mean confidence.
    - FIFO Eviction: Buffers evict strictly by insertion order.
    - Windowed Visibility: ``get_agent_metrics`` hides agents whose
      ``last_seen`` is outside the horizon, independently of the purge that
      runs while handling each routing decision.
    - Idempotency: Messages that carry an explicit event id are remembered
      in a bounded window; a redelivered id is dropped instead of being
      double-counted.

Notifications:
    Each applied message publishes exactly one data notification:

    ==================== ========================
    Record               Notification
    ==================== ========================
    RoutingDecision      routingUpdate
    AgentAction          actionUpdate
    TransformationEvent  transformationUpdate
    PerformanceMetric    performanceUpdate
    ==================== ========================

    ``metricUpdate`` carries the full agent metrics list and is published
    after hydration.

Example:
    >>> from omnidash.aggregators import ConfigIntelligenceAggregator
    >>> aggregator = IntelligenceAggregator(ConfigIntelligenceAggregator())
    >>> aggregator.get_agent_metrics()
    []
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from omnidash.aggregators.config import ConfigIntelligenceAggregator
from omnidash.aggregators.enums import EnumTimeWindow
from omnidash.events.models import (
    AgentAction,
    AgentMetricsView,
    AgentSummaryRow,
    PerformanceMetric,
    PerformanceStatsView,
    PerformanceUpdate,
    RoutingDecision,
    TransformationEvent,
)
from omnidash.events.normalization import EventRecord, ParsedEvent
from omnidash.lib.notification_bus import EnumNotificationType, NotificationBus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# Internal State Models
# =============================================================================


@dataclass
class AgentMetricState:
    """Mutable rolling statistics for one agent.

    Derived values (averages, success rate) are never stored.
    """

    last_seen: datetime
    count: int = 0
    total_routing_time_ms: float = 0.0
    total_confidence: float = 0.0
    success_count: int = 0
    error_count: int = 0

    @property
    def outcome_count(self) -> int:
        return self.success_count + self.error_count

    @property
    def avg_routing_time(self) -> float:
        return self.total_routing_time_ms / self.count if self.count else 0.0

    @property
    def avg_confidence(self) -> float:
        return self.total_confidence / self.count if self.count else 0.0

    @property
    def success_rate(self) -> float | None:
        if self.outcome_count > 0:
            return self.success_count / self.outcome_count
        if self.count > 0:
            return self.avg_confidence
        return None


@dataclass
class PerformanceStatsState:
    """Running performance aggregate, reset only on restart."""

    total_queries: int = 0
    cache_hit_count: int = 0
    total_routing_duration: float = 0.0
    avg_routing_duration: float = 0.0

    @property
    def cache_hit_rate(self) -> float:
        if self.total_queries == 0:
            return 0.0
        return self.cache_hit_count / self.total_queries * 100

    def to_view(self) -> PerformanceStatsView:
        return PerformanceStatsView(
            total_queries=self.total_queries,
            cache_hit_count=self.cache_hit_count,
            total_routing_duration=self.total_routing_duration,
            avg_routing_duration=self.avg_routing_duration,
            cache_hit_rate=self.cache_hit_rate,
        )


@dataclass
class _Buffers:
    actions: deque[AgentAction]
    routing_decisions: deque[RoutingDecision]
    transformations: deque[TransformationEvent]
    performance_metrics: deque[PerformanceMetric]
    seen_keys: OrderedDict[str, None] = field(default_factory=OrderedDict)


# =============================================================================
# Intelligence Aggregator Implementation
# =============================================================================


class IntelligenceAggregator:
    """Owns and mutates the in-memory intelligence state.

    Attributes:
        config: Aggregator configuration (capacities, horizon, dedupe window).
        notifications: Bus that receives one notification per applied record.
    """

    def __init__(
        self,
        config: ConfigIntelligenceAggregator | None = None,
        notifications: NotificationBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize empty aggregation state.

        Args:
            config: Aggregator configuration. Defaults are used when omitted.
            notifications: Notification bus. A private bus is created when
                omitted, which is convenient for tests.
            clock: Returns the current aware datetime. Injected for tests.
        """
        self.config = config or ConfigIntelligenceAggregator()
        self.notifications = notifications or NotificationBus()
        self._clock: Clock = clock or _utc_now
        self._agent_metrics: dict[str, AgentMetricState] = {}
        self._performance = PerformanceStatsState()
        self._buffers = _Buffers(
            actions=deque(maxlen=self.config.max_recent_actions),
            routing_decisions=deque(maxlen=self.config.max_routing_decisions),
            transformations=deque(maxlen=self.config.max_transformations),
            performance_metrics=deque(maxlen=self.config.max_performance_metrics),
        )
        self._duplicates_dropped = 0

    @property
    def metrics_window(self) -> timedelta:
        return timedelta(hours=self.config.metrics_window_hours)

    @property
    def duplicates_dropped(self) -> int:
        """Number of redelivered messages dropped by the idempotency window."""
        return self._duplicates_dropped

    # =========================================================================
    # Mutation (consumer task only)
    # =========================================================================

    def apply(self, event: ParsedEvent) -> bool:
        """Apply one normalized message.

        Returns:
            True if the record was applied, False if it was a duplicate.
        """
        if event.idempotency_key is not None and self._is_duplicate(
            event.idempotency_key
        ):
            self._duplicates_dropped += 1
            logger.debug(
                "Dropping redelivered event",
                extra={"idempotency_key": event.idempotency_key},
            )
            return False

        self.dispatch(event.record)
        return True

    def dispatch(self, record: EventRecord) -> None:
        """Route a canonical record to its handler."""
        if isinstance(record, RoutingDecision):
            self.handle_routing_decision(record)
        elif isinstance(record, AgentAction):
            self.handle_agent_action(record)
        elif isinstance(record, TransformationEvent):
            self.handle_transformation(record)
        elif isinstance(record, PerformanceMetric):
            self.handle_performance_metric(record)
        else:
            raise TypeError(f"Unsupported record type: {type(record).__name__}")

    def handle_routing_decision(
        self, decision: RoutingDecision, *, notify: bool = True
    ) -> None:
        now = self._clock()
        state = self._metric_state(decision.selected_agent, now)
        state.count += 1
        state.total_routing_time_ms += decision.routing_time_ms
        state.total_confidence += decision.confidence_score
        state.last_seen = now

        self.purge_stale_metrics(now)

        self._buffers.routing_decisions.appendleft(decision)

        logger.debug(
            "Routing decision applied",
            extra={
                "agent": decision.selected_agent,
                "count": state.count,
                "avg_confidence": round(state.avg_confidence, 4),
            },
        )
        if notify:
            self.notifications.publish(EnumNotificationType.ROUTING_UPDATE, decision)

    def handle_agent_action(self, action: AgentAction, *, notify: bool = True) -> None:
        self._buffers.actions.appendleft(action)

        if action.agent_name and action.is_outcome:
            now = self._clock()
            state = self._metric_state(action.agent_name, now)
            if action.action_type == "success":
                state.success_count += 1
            else:
                state.error_count += 1
            state.last_seen = now

        if notify:
            self.notifications.publish(EnumNotificationType.ACTION_UPDATE, action)

    def handle_transformation(
        self, transformation: TransformationEvent, *, notify: bool = True
    ) -> None:
        self._buffers.transformations.appendleft(transformation)
        if notify:
            self.notifications.publish(
                EnumNotificationType.TRANSFORMATION_UPDATE, transformation
            )

    def handle_performance_metric(
        self, metric: PerformanceMetric, *, notify: bool = True
    ) -> None:
        self._buffers.performance_metrics.appendleft(metric)

        stats = self._performance
        stats.total_queries += 1
        if metric.cache_hit:
            stats.cache_hit_count += 1
        stats.total_routing_duration += metric.routing_duration_ms
        stats.avg_routing_duration = stats.total_routing_duration / stats.total_queries

        if notify:
            self.notifications.publish(
                EnumNotificationType.PERFORMANCE_UPDATE,
                PerformanceUpdate(metric=metric, stats=stats.to_view()),
            )

    def purge_stale_metrics(self, now: datetime | None = None) -> int:
        """Remove agents whose last event is older than the metrics window.

        Returns:
            Number of agents removed.
        """
        cutoff = (now or self._clock()) - self.metrics_window
        stale = [
            agent
            for agent, state in self._agent_metrics.items()
            if state.last_seen < cutoff
        ]
        for agent in stale:
            del self._agent_metrics[agent]
        if stale:
            logger.debug("Purged stale agent metrics", extra={"agents": stale})
        return len(stale)

    def hydrate(
        self,
        actions: Sequence[AgentAction],
        agent_seeds: Sequence[AgentSummaryRow],
    ) -> None:
        """Seed state from persisted history.

        Agent seeds are applied first, then actions are replayed oldest-first
        through the live action handler so both paths share one
        representation. One ``metricUpdate`` and one ``actionUpdate`` (for the
        newest action) are published afterwards.

        Args:
            actions: Historical actions, most recent first.
            agent_seeds: 24h aggregate rows keyed by agent.
        """
        now = self._clock()
        for row in agent_seeds:
            self._agent_metrics[row.agent] = AgentMetricState(
                last_seen=now,
                count=row.total_requests,
                total_routing_time_ms=row.avg_routing_time * row.total_requests,
                total_confidence=row.avg_confidence * row.total_requests,
            )

        for action in reversed(actions):
            self.handle_agent_action(action, notify=False)

        logger.info(
            "Aggregator hydrated from history",
            extra={
                "agents": len(agent_seeds),
                "actions": len(actions),
                "buffered_actions": len(self._buffers.actions),
            },
        )

        self.notifications.publish(
            EnumNotificationType.METRIC_UPDATE, self.get_agent_metrics()
        )
        if self._buffers.actions:
            self.notifications.publish(
                EnumNotificationType.ACTION_UPDATE, self._buffers.actions[0]
            )

    # =========================================================================
    # Read accessors
    # =========================================================================

    def get_agent_metrics(self) -> list[AgentMetricsView]:
        """Per-agent statistics for agents seen within the metrics window."""
        cutoff = self._clock() - self.metrics_window
        return [
            AgentMetricsView(
                agent=agent,
                total_requests=state.count,
                success_rate=state.success_rate,
                avg_routing_time=state.avg_routing_time,
                avg_confidence=state.avg_confidence,
                last_seen=state.last_seen,
            )
            for agent, state in self._agent_metrics.items()
            if state.last_seen >= cutoff
        ]

    def get_recent_actions(self, limit: int | None = None) -> list[AgentAction]:
        actions = list(self._buffers.actions)
        if limit is not None and limit > 0:
            return actions[:limit]
        return actions

    def get_actions_by_agent(
        self, agent_name: str, time_window: str | EnumTimeWindow = EnumTimeWindow.LAST_HOUR
    ) -> list[AgentAction]:
        """Buffered actions for one agent inside a trailing window (1h, 24h, 7d)."""
        since = self._clock() - EnumTimeWindow.parse(time_window).delta
        return [
            action
            for action in self._buffers.actions
            if action.agent_name == agent_name and action.created_at >= since
        ]

    def get_routing_decisions(
        self,
        agent: str | None = None,
        min_confidence: float | None = None,
    ) -> list[RoutingDecision]:
        decisions = list(self._buffers.routing_decisions)
        if agent:
            decisions = [d for d in decisions if d.selected_agent == agent]
        if min_confidence is not None:
            decisions = [d for d in decisions if d.confidence_score >= min_confidence]
        return decisions

    def get_recent_transformations(self, limit: int = 50) -> list[TransformationEvent]:
        return list(self._buffers.transformations)[:limit]

    def get_performance_metrics(self, limit: int = 100) -> list[PerformanceMetric]:
        return list(self._buffers.performance_metrics)[:limit]

    def get_performance_stats(self) -> PerformanceStatsView:
        return self._performance.to_view()

    @property
    def tracked_agent_count(self) -> int:
        """Agents currently held in the metrics map (including not-yet-purged)."""
        return len(self._agent_metrics)

    @property
    def recent_actions_count(self) -> int:
        return len(self._buffers.actions)

    def is_empty(self) -> bool:
        """True when no record of any kind has been aggregated yet."""
        return not (
            self._agent_metrics
            or self._buffers.actions
            or self._buffers.routing_decisions
            or self._buffers.transformations
            or self._buffers.performance_metrics
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _metric_state(self, agent: str, now: datetime) -> AgentMetricState:
        state = self._agent_metrics.get(agent)
        if state is None:
            state = AgentMetricState(last_seen=now)
            self._agent_metrics[agent] = state
        return state

    def _is_duplicate(self, key: str) -> bool:
        window = self.config.dedupe_window_size
        if window == 0:
            return False
        seen = self._buffers.seen_keys
        if key in seen:
            return True
        seen[key] = None
        while len(seen) > window:
            seen.popitem(last=False)
        return False


__all__ = [
    "AgentMetricState",
    "Clock",
    "IntelligenceAggregator",
    "PerformanceStatsState",
]
