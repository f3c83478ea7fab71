# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Agent observability event records, topics and boundary normalization.

Key Components:
    - TopicBase: Bus topic names
    - AgentAction, RoutingDecision, TransformationEvent, PerformanceMetric:
      Canonical event records (snake_case or camelCase on input)
    - normalize_event: Raw message -> ParsedEvent | SkippedMessage
"""

from __future__ import annotations

from omnidash.events.models import (
    AgentAction,
    AgentMetricsView,
    AgentSummaryRow,
    PerformanceMetric,
    PerformanceStatsView,
    PerformanceUpdate,
    RoutingDecision,
    TransformationEvent,
    to_wire,
)
from omnidash.events.normalization import (
    EventRecord,
    ParsedEvent,
    ParseResult,
    SkippedMessage,
    decode_value,
    normalize_event,
)
from omnidash.events.topics import EVENT_TOPICS, TopicBase

__all__ = [
    # Topics
    "EVENT_TOPICS",
    "TopicBase",
    # Records
    "AgentAction",
    "PerformanceMetric",
    "RoutingDecision",
    "TransformationEvent",
    # Views
    "AgentMetricsView",
    "AgentSummaryRow",
    "PerformanceStatsView",
    "PerformanceUpdate",
    # Normalization
    "EventRecord",
    "ParseResult",
    "ParsedEvent",
    "SkippedMessage",
    "decode_value",
    "normalize_event",
    "to_wire",
]
