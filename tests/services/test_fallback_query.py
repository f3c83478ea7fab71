"""Tests for FallbackQueryService tier resolution.

The live tier is a real aggregator; the history store is mocked.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from omnidash.aggregators import IntelligenceAggregator
from omnidash.events.models import (
    AgentAction,
    AgentSummaryRow,
    PerformanceMetric,
    RoutingDecision,
)
from omnidash.services import EnumDataSource, FallbackQueryService
from omnidash.services.fallback_query import (
    build_execution_trace,
    clamp_limit,
    stats_from_samples,
)


@pytest.fixture
def store() -> MagicMock:
    store = MagicMock()
    store.fetch_agent_summary = AsyncMock(return_value=[])
    store.fetch_recent_actions = AsyncMock(return_value=[])
    store.fetch_recent_routing_decisions = AsyncMock(return_value=[])
    store.fetch_recent_transformations = AsyncMock(return_value=[])
    store.fetch_performance_metrics = AsyncMock(return_value=[])
    store.fetch_routing_decisions_for_correlation = AsyncMock(return_value=[])
    store.fetch_actions_for_correlation = AsyncMock(return_value=[])
    return store


@pytest.fixture
def service(
    aggregator: IntelligenceAggregator, store: MagicMock, clock
) -> FallbackQueryService:
    return FallbackQueryService(aggregator, store=store, clock=clock)


class TestClampLimit:
    @pytest.mark.parametrize(
        ("limit", "expected"),
        [(None, 100), (0, 100), (-5, 100), (25, 25), (5000, 1000)],
    )
    def test_clamp(self, limit: int | None, expected: int) -> None:
        assert clamp_limit(limit, 100) == expected

    def test_custom_maximum(self) -> None:
        assert clamp_limit(900, 50, maximum=500) == 500


class TestTierResolution:
    async def test_live_tier_when_aggregator_has_data(
        self,
        service: FallbackQueryService,
        aggregator: IntelligenceAggregator,
        store: MagicMock,
        make_action: Callable[..., AgentAction],
    ) -> None:
        aggregator.handle_agent_action(make_action(id="live-1"))

        result = await service.get_recent_actions(limit=10)

        assert result.source is EnumDataSource.LIVE
        assert [a.id for a in result.data] == ["live-1"]
        store.fetch_recent_actions.assert_not_awaited()

    async def test_historical_tier_when_live_empty(
        self, service: FallbackQueryService, store: MagicMock
    ) -> None:
        store.fetch_recent_actions.return_value = [AgentAction(id="db-1")]

        result = await service.get_recent_actions(limit=10)

        assert result.source is EnumDataSource.HISTORICAL
        assert [a.id for a in result.data] == ["db-1"]
        store.fetch_recent_actions.assert_awaited_once_with(10)

    async def test_synthetic_tier_when_history_empty(
        self, service: FallbackQueryService
    ) -> None:
        result = await service.get_recent_actions(limit=3)

        assert result.is_synthetic
        assert len(result.data) == 3
        assert all(a.id.startswith("mock-action-") for a in result.data)

    async def test_synthetic_tier_when_history_raises(
        self, service: FallbackQueryService, store: MagicMock
    ) -> None:
        store.fetch_recent_actions.side_effect = OSError("connection refused")

        result = await service.get_recent_actions()

        assert result.source is EnumDataSource.SYNTHETIC
        assert len(result.data) == 5

    async def test_synthetic_tier_without_store(
        self, aggregator: IntelligenceAggregator, clock
    ) -> None:
        service = FallbackQueryService(aggregator, store=None, clock=clock)

        result = await service.get_recent_transformations()

        assert result.is_synthetic
        assert result.data[0].created_at == clock.now - timedelta(minutes=7)

    async def test_live_filter_miss_does_not_fall_through(
        self,
        service: FallbackQueryService,
        aggregator: IntelligenceAggregator,
        store: MagicMock,
        make_decision: Callable[..., RoutingDecision],
    ) -> None:
        """A filter that matches nothing in live data still answers from live."""
        aggregator.handle_routing_decision(make_decision(agent="agent-api"))

        result = await service.get_routing_decisions(agent="agent-frontend")

        assert result.source is EnumDataSource.LIVE
        assert result.data == []
        store.fetch_recent_routing_decisions.assert_not_awaited()


class TestReads:
    async def test_agent_summary_from_history_uses_window(
        self, service: FallbackQueryService, store: MagicMock, clock
    ) -> None:
        store.fetch_agent_summary.return_value = [
            AgentSummaryRow(
                agent="agent-api",
                total_requests=12,
                avg_routing_time=41.5,
                avg_confidence=0.87,
            ),
            AgentSummaryRow(agent="agent-idle", total_requests=2),
        ]

        result = await service.get_agent_summary("7d")

        assert result.source is EnumDataSource.HISTORICAL
        assert store.fetch_agent_summary.await_args.args == (timedelta(days=7), 50)
        first, second = result.data
        assert first.success_rate == 0.87
        assert first.last_seen == clock.now
        assert second.success_rate is None

    async def test_agent_summary_unknown_window_defaults_to_day(
        self, service: FallbackQueryService, store: MagicMock
    ) -> None:
        await service.get_agent_summary("90d")

        assert store.fetch_agent_summary.await_args.args[0] == timedelta(hours=24)

    async def test_actions_by_agent_window_on_history(
        self, service: FallbackQueryService, store: MagicMock, clock
    ) -> None:
        store.fetch_recent_actions.return_value = [
            AgentAction(id="recent", agent_name="agent-api", created_at=clock.now),
            AgentAction(
                id="old",
                agent_name="agent-api",
                created_at=clock.now - timedelta(hours=2),
            ),
            AgentAction(id="other", agent_name="agent-frontend", created_at=clock.now),
        ]

        result = await service.get_actions_by_agent("agent-api", "1h")

        assert result.source is EnumDataSource.HISTORICAL
        assert [a.id for a in result.data] == ["recent"]

    async def test_synthetic_routing_decisions_filtered(
        self, service: FallbackQueryService
    ) -> None:
        result = await service.get_routing_decisions(min_confidence=0.9)

        assert result.is_synthetic
        assert {d.selected_agent for d in result.data} == {"agent-api", "agent-database"}

    async def test_performance_metrics_live_uses_running_stats(
        self,
        service: FallbackQueryService,
        aggregator: IntelligenceAggregator,
        make_metric: Callable[..., PerformanceMetric],
    ) -> None:
        aggregator.handle_performance_metric(make_metric(routing_duration_ms=40, cache_hit=True))
        aggregator.handle_performance_metric(make_metric(routing_duration_ms=60))

        result = await service.get_performance_metrics(limit=1)

        assert result.source is EnumDataSource.LIVE
        assert len(result.data.metrics) == 1
        assert result.data.stats.total_queries == 2
        assert result.data.stats.avg_routing_duration == 50
        assert result.data.stats.cache_hit_rate == 50

    async def test_performance_metrics_synthetic_stats(
        self, service: FallbackQueryService
    ) -> None:
        result = await service.get_performance_metrics()

        assert result.is_synthetic
        assert result.data.stats.total_queries == 4
        assert result.data.stats.cache_hit_count == 2

    def test_stats_from_samples_empty(self) -> None:
        stats = stats_from_samples([])

        assert stats.total_queries == 0
        assert stats.avg_routing_duration == 0


class TestExecutionTrace:
    async def test_mock_trace(self, service: FallbackQueryService, store: MagicMock) -> None:
        result = await service.get_execution_trace("mock-corr-1")

        assert result is not None
        assert result.is_synthetic
        trace = result.data
        assert trace["routingDecision"]["selectedAgent"] == "agent-api"
        assert trace["summary"]["totalActions"] == 2
        assert trace["summary"]["totalDuration"] == 110
        store.fetch_routing_decisions_for_correlation.assert_not_awaited()

    async def test_unknown_mock_trace(self, service: FallbackQueryService) -> None:
        assert await service.get_execution_trace("mock-corr-99") is None

    async def test_no_decision_returns_none(self, service: FallbackQueryService) -> None:
        assert await service.get_execution_trace("corr-unknown") is None

    async def test_no_store_returns_none(
        self, aggregator: IntelligenceAggregator
    ) -> None:
        service = FallbackQueryService(aggregator, store=None)

        assert await service.get_execution_trace("corr-1") is None

    async def test_store_failure_returns_none(
        self, service: FallbackQueryService, store: MagicMock
    ) -> None:
        store.fetch_routing_decisions_for_correlation.side_effect = RuntimeError("down")

        assert await service.get_execution_trace("corr-1") is None

    async def test_historical_trace(
        self, service: FallbackQueryService, store: MagicMock, clock
    ) -> None:
        store.fetch_routing_decisions_for_correlation.return_value = [
            {
                "selected_agent": "agent-api",
                "confidence_score": 0.9,
                "routing_time_ms": 30,
                "created_at": clock.now,
                "actual_success": None,
                "trigger_confidence": 0.8,
            }
        ]
        store.fetch_actions_for_correlation.return_value = [
            AgentAction(id="a-1", action_type="tool_call", duration_ms=20, created_at=clock.now),
            AgentAction(id="a-2", action_type="error", duration_ms=5, created_at=clock.now),
        ]

        result = await service.get_execution_trace("corr-1")

        assert result is not None
        assert result.source is EnumDataSource.HISTORICAL
        trace = result.data
        assert trace["summary"]["totalDuration"] == 55
        assert trace["summary"]["status"] == "success"
        assert [a["status"] for a in trace["actions"]] == ["success", "failed"]
        assert trace["routingDecision"]["triggerConfidence"] == 0.8
        assert trace["routingDecision"]["contextConfidence"] is None

    def test_failed_decision_marks_trace_failed(self) -> None:
        trace = build_execution_trace(
            "corr-1", {"selected_agent": "agent-api", "actual_success": False}, []
        )

        assert trace["summary"]["status"] == "failed"
        assert trace["summary"]["totalActions"] == 0
