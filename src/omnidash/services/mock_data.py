"""Deterministic synthetic data for the last fallback tier.

Every fixture is built relative to ``now`` so demo data always looks recent.
Identifiers carry a ``mock-`` prefix so synthetic rows are recognisable.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from omnidash.events.models import (
    AgentAction,
    AgentMetricsView,
    PerformanceMetric,
    RoutingDecision,
    TransformationEvent,
)

MOCK_CORRELATION_PREFIX = "mock-corr-"

# (agent, action_type, action_name, details, debug_mode, duration_ms, minutes_ago)
_MOCK_ACTIONS: tuple[tuple[str, str, str, dict[str, Any], bool, int, int], ...] = (
    ("agent-api", "tool_call", "Read", {"file": "/api/routes.ts", "lines": 150}, False, 45, 5),
    (
        "agent-frontend",
        "tool_call",
        "Edit",
        {"file": "/components/Dashboard.tsx", "changes": 5},
        False,
        120,
        10,
    ),
    (
        "agent-database",
        "decision",
        "Schema Migration",
        {"tables": ["users", "sessions"], "strategy": "incremental"},
        False,
        230,
        15,
    ),
    (
        "agent-test-intelligence",
        "tool_call",
        "Bash",
        {"command": "npm test", "exitCode": 0},
        True,
        3500,
        20,
    ),
    ("agent-code-review", "tool_call", "Grep", {"pattern": "TODO", "matches": 12}, False, 78, 25),
)

# (agent, confidence, routing_time_ms, strategy, user_request)
_MOCK_DECISIONS: tuple[tuple[str, float, int, str, str], ...] = (
    (
        "agent-api",
        0.92,
        42,
        "enhanced_fuzzy_matching",
        "Read the API routes file and analyze the endpoint structure",
    ),
    (
        "agent-frontend",
        0.89,
        35,
        "direct_routing",
        "Update the Dashboard component with new metrics visualization",
    ),
    (
        "agent-database",
        0.94,
        48,
        "capability_match",
        "Plan database schema migration for user sessions",
    ),
    ("agent-test-intelligence", 0.87, 51, "enhanced_fuzzy_matching", "Run the test suite"),
    ("agent-code-review", 0.81, 39, "capability_match", "Review open TODO comments"),
)


def mock_recent_actions(now: datetime) -> list[AgentAction]:
    """Five recent actions, newest first."""
    return [
        AgentAction(
            id=f"mock-action-{index}",
            correlation_id=f"{MOCK_CORRELATION_PREFIX}{index}",
            agent_name=agent,
            action_type=action_type,
            action_name=action_name,
            action_details=details,
            debug_mode=debug_mode,
            duration_ms=duration_ms,
            created_at=now - timedelta(minutes=minutes_ago),
        )
        for index, (
            agent,
            action_type,
            action_name,
            details,
            debug_mode,
            duration_ms,
            minutes_ago,
        ) in enumerate(_MOCK_ACTIONS, start=1)
    ]


def mock_routing_decisions(now: datetime) -> list[RoutingDecision]:
    return [
        RoutingDecision(
            id=f"mock-decision-{index}",
            correlation_id=f"{MOCK_CORRELATION_PREFIX}{index}",
            user_request=user_request,
            selected_agent=agent,
            confidence_score=confidence,
            routing_strategy=strategy,
            alternatives=[],
            reasoning="Synthetic routing decision",
            routing_time_ms=routing_time_ms,
            created_at=now - timedelta(minutes=5 * index),
        )
        for index, (agent, confidence, routing_time_ms, strategy, user_request) in enumerate(
            _MOCK_DECISIONS, start=1
        )
    ]


def mock_agent_metrics(now: datetime) -> list[AgentMetricsView]:
    return [
        AgentMetricsView(
            agent=agent,
            total_requests=10 * (len(_MOCK_DECISIONS) - index),
            success_rate=confidence,
            avg_routing_time=float(routing_time_ms),
            avg_confidence=confidence,
            last_seen=now - timedelta(minutes=5 * (index + 1)),
        )
        for index, (agent, confidence, routing_time_ms, _strategy, _request) in enumerate(
            _MOCK_DECISIONS
        )
    ]


def mock_transformations(now: datetime) -> list[TransformationEvent]:
    pairs = (
        ("agent-polymorphic", "agent-api", 0.91),
        ("agent-api", "agent-database", 0.86),
        ("agent-polymorphic", "agent-frontend", 0.88),
    )
    return [
        TransformationEvent(
            id=f"mock-transformation-{index}",
            correlation_id=f"{MOCK_CORRELATION_PREFIX}{index}",
            source_agent=source,
            target_agent=target,
            transformation_reason="Synthetic hand-off",
            transformation_duration_ms=15 * index,
            success=True,
            confidence_score=confidence,
            created_at=now - timedelta(minutes=7 * index),
        )
        for index, (source, target, confidence) in enumerate(pairs, start=1)
    ]


def mock_performance_metrics(now: datetime) -> list[PerformanceMetric]:
    samples = (
        ("optimize my API", 45, False, 3, "enhanced_fuzzy_matching"),
        ("fix the dashboard layout", 12, True, 1, "exact_match"),
        ("migrate the sessions table", 52, False, 4, "enhanced_fuzzy_matching"),
        ("run the tests", 9, True, 1, "exact_match"),
    )
    return [
        PerformanceMetric(
            id=f"mock-metric-{index}",
            correlation_id=f"{MOCK_CORRELATION_PREFIX}{index}",
            query_text=query,
            routing_duration_ms=duration,
            cache_hit=cache_hit,
            candidates_evaluated=candidates,
            trigger_match_strategy=strategy,
            created_at=now - timedelta(minutes=3 * index),
        )
        for index, (query, duration, cache_hit, candidates, strategy) in enumerate(
            samples, start=1
        )
    ]


def _trace(
    now: datetime,
    index: int,
    confidence_breakdown: tuple[float, float, float, float | None],
    alternatives: list[dict[str, Any]],
    reasoning: str,
    actions: list[tuple[str, str, str, dict[str, Any], int]],
) -> dict[str, Any]:
    agent, confidence, routing_time_ms, strategy, user_request = _MOCK_DECISIONS[index - 1]
    started = now - timedelta(minutes=5 * index)
    trigger, context, capability, historical = confidence_breakdown

    offset_ms = routing_time_ms
    trace_actions = []
    for action_id, action_type, action_name, details, duration_ms in actions:
        trace_actions.append(
            {
                "id": action_id,
                "actionType": action_type,
                "actionName": action_name,
                "actionDetails": details,
                "durationMs": duration_ms,
                "timestamp": (started + timedelta(milliseconds=offset_ms)).isoformat(),
                "status": "success",
            }
        )
        offset_ms += duration_ms

    return {
        "correlationId": f"{MOCK_CORRELATION_PREFIX}{index}",
        "routingDecision": {
            "userRequest": user_request,
            "selectedAgent": agent,
            "confidenceScore": confidence,
            "routingStrategy": strategy,
            "routingTimeMs": routing_time_ms,
            "timestamp": started.isoformat(),
            "actualSuccess": True,
            "alternatives": alternatives,
            "reasoning": reasoning,
            "triggerConfidence": trigger,
            "contextConfidence": context,
            "capabilityConfidence": capability,
            "historicalConfidence": historical,
        },
        "actions": trace_actions,
        "summary": {
            "totalActions": len(trace_actions),
            "totalDuration": offset_ms,
            "status": "success",
            "startTime": started.isoformat(),
            "endTime": (started + timedelta(milliseconds=offset_ms)).isoformat(),
        },
    }


def mock_execution_traces(now: datetime) -> dict[str, dict[str, Any]]:
    """Synthetic execution traces keyed by mock correlation id."""
    traces = [
        _trace(
            now,
            1,
            (0.95, 0.88, 0.93, 0.92),
            [{"agent": "agent-code-review", "confidence": 0.75}],
            "High confidence match based on API-related keywords and file path",
            [
                (
                    "mock-action-1",
                    "tool_call",
                    "Read",
                    {"file": "/api/routes.ts", "lines": 150, "encoding": "utf-8"},
                    45,
                ),
                (
                    "mock-action-1-2",
                    "tool_call",
                    "Grep",
                    {"pattern": "router\\.get", "matches": 12},
                    23,
                ),
            ],
        ),
        _trace(
            now,
            2,
            (0.91, 0.85, 0.90, None),
            [],
            "Frontend component modification task",
            [
                (
                    "mock-action-2",
                    "tool_call",
                    "Read",
                    {"file": "/components/Dashboard.tsx"},
                    38,
                ),
                (
                    "mock-action-2-2",
                    "tool_call",
                    "Edit",
                    {
                        "file": "/components/Dashboard.tsx",
                        "changes": 5,
                        "linesAdded": 12,
                        "linesRemoved": 7,
                    },
                    120,
                ),
            ],
        ),
        _trace(
            now,
            3,
            (0.96, 0.92, 0.94, 0.93),
            [{"agent": "agent-architect", "confidence": 0.82}],
            "Database expertise required for schema migration planning",
            [
                (
                    "mock-action-3",
                    "decision",
                    "Schema Analysis",
                    {"tables": ["users", "sessions"], "strategy": "incremental", "risk": "low"},
                    230,
                ),
            ],
        ),
    ]
    return {trace["correlationId"]: trace for trace in traces}


__all__ = [
    "MOCK_CORRELATION_PREFIX",
    "mock_agent_metrics",
    "mock_execution_traces",
    "mock_performance_metrics",
    "mock_recent_actions",
    "mock_routing_decisions",
    "mock_transformations",
]
