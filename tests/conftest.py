"""Shared fixtures for omnidash tests.

Provides:
- A controllable clock for time-window behavior
- Record factories for the four event kinds
- Settings cache isolation
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from omnidash.aggregators import ConfigIntelligenceAggregator, IntelligenceAggregator
from omnidash.config.settings import clear_settings_cache
from omnidash.events.models import (
    AgentAction,
    PerformanceMetric,
    RoutingDecision,
    TransformationEvent,
)
from omnidash.lib.notification_bus import EnumNotificationType, NotificationBus

FIXED_NOW = datetime(2025, 10, 27, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class NotificationRecorder:
    """Records every notification published on a bus."""

    def __init__(self, bus: NotificationBus) -> None:
        self.received: list[tuple[EnumNotificationType, Any]] = []
        bus.subscribe_many(list(EnumNotificationType), self)

    def __call__(self, kind: EnumNotificationType, payload: Any) -> None:
        self.received.append((kind, payload))

    @property
    def kinds(self) -> list[EnumNotificationType]:
        return [kind for kind, _ in self.received]


@pytest.fixture(autouse=True)
def reset_settings() -> Iterator[None]:
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def aggregator_config() -> ConfigIntelligenceAggregator:
    return ConfigIntelligenceAggregator()


@pytest.fixture
def aggregator(
    aggregator_config: ConfigIntelligenceAggregator, clock: FakeClock
) -> IntelligenceAggregator:
    return IntelligenceAggregator(aggregator_config, clock=clock)


@pytest.fixture
def recorder(aggregator: IntelligenceAggregator) -> NotificationRecorder:
    return NotificationRecorder(aggregator.notifications)


@pytest.fixture
def make_decision(clock: FakeClock) -> Callable[..., RoutingDecision]:
    def _make(
        agent: str = "agent-api",
        confidence: float = 0.9,
        routing_time_ms: float = 40,
        **overrides: Any,
    ) -> RoutingDecision:
        fields: dict[str, Any] = {
            "user_request": "optimize my API",
            "selected_agent": agent,
            "confidence_score": confidence,
            "routing_strategy": "enhanced_fuzzy_matching",
            "routing_time_ms": routing_time_ms,
            "created_at": clock.now,
        }
        fields.update(overrides)
        return RoutingDecision(**fields)

    return _make


@pytest.fixture
def make_action(clock: FakeClock) -> Callable[..., AgentAction]:
    def _make(
        agent: str = "agent-api",
        action_type: str = "tool_call",
        **overrides: Any,
    ) -> AgentAction:
        fields: dict[str, Any] = {
            "agent_name": agent,
            "action_type": action_type,
            "action_name": "Read",
            "duration_ms": 50,
            "created_at": clock.now,
        }
        fields.update(overrides)
        return AgentAction(**fields)

    return _make


@pytest.fixture
def make_transformation(clock: FakeClock) -> Callable[..., TransformationEvent]:
    def _make(**overrides: Any) -> TransformationEvent:
        fields: dict[str, Any] = {
            "source_agent": "agent-polymorphic",
            "target_agent": "agent-api",
            "transformation_reason": "API work detected",
            "transformation_duration_ms": 12,
            "confidence_score": 0.88,
            "created_at": clock.now,
        }
        fields.update(overrides)
        return TransformationEvent(**fields)

    return _make


@pytest.fixture
def make_metric(clock: FakeClock) -> Callable[..., PerformanceMetric]:
    def _make(
        routing_duration_ms: float = 45, cache_hit: bool = False, **overrides: Any
    ) -> PerformanceMetric:
        fields: dict[str, Any] = {
            "query_text": "optimize my API",
            "routing_duration_ms": routing_duration_ms,
            "cache_hit": cache_hit,
            "candidates_evaluated": 3,
            "trigger_match_strategy": "enhanced_fuzzy_matching",
            "created_at": clock.now,
        }
        fields.update(overrides)
        return PerformanceMetric(**fields)

    return _make
