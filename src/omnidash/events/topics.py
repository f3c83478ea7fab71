"""Topic names for omnidash bus traffic.

Topic names are the wire names; no environment prefix is applied.
"""

from __future__ import annotations

from enum import StrEnum


class TopicBase(StrEnum):
    """Bus topic names consumed or produced by omnidash."""

    # Agent observability events (legacy naming kept for existing producers)
    ROUTING_DECISIONS = "agent-routing-decisions"
    AGENT_ACTIONS = "agent-actions"
    PERFORMANCE_METRICS = "router-performance-metrics"
    TRANSFORMATIONS = "agent-transformation-events"

    # Intelligence request/response (correlation bridge)
    CODE_ANALYSIS_REQUESTED = (
        "dev.archon-intelligence.intelligence.code-analysis-requested.v1"
    )
    CODE_ANALYSIS_COMPLETED = (
        "dev.archon-intelligence.intelligence.code-analysis-completed.v1"
    )
    CODE_ANALYSIS_FAILED = "dev.archon-intelligence.intelligence.code-analysis-failed.v1"


EVENT_TOPICS: tuple[TopicBase, ...] = (
    TopicBase.ROUTING_DECISIONS,
    TopicBase.AGENT_ACTIONS,
    TopicBase.TRANSFORMATIONS,
    TopicBase.PERFORMANCE_METRICS,
)
"""The four event topics folded into the in-memory aggregates."""


__all__ = ["EVENT_TOPICS", "TopicBase"]
