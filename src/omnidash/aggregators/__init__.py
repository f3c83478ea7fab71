# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Intelligence aggregation components.

Key Components:
    - IntelligenceAggregator: Single owner of per-agent metrics, recent-event
      ring buffers and the running performance aggregate
    - ConfigIntelligenceAggregator: Capacities, metrics horizon, dedupe window
    - EnumTimeWindow: Windows accepted by the per-agent action timeline
    - AgentMetricState, PerformanceStatsState: Internal state models

Example:
    >>> from omnidash.aggregators import (
    ...     ConfigIntelligenceAggregator,
    ...     IntelligenceAggregator,
    ... )
    >>> aggregator = IntelligenceAggregator(ConfigIntelligenceAggregator())
"""

from __future__ import annotations

from omnidash.aggregators.config import ConfigIntelligenceAggregator
from omnidash.aggregators.enums import EnumHealthStatus, EnumTimeWindow
from omnidash.aggregators.intelligence_aggregator import (
    AgentMetricState,
    IntelligenceAggregator,
    PerformanceStatsState,
)

__all__ = [
    # Implementation
    "IntelligenceAggregator",
    # Enums
    "EnumHealthStatus",
    "EnumTimeWindow",
    # Configuration
    "ConfigIntelligenceAggregator",
    # Internal state models (exposed for testing)
    "AgentMetricState",
    "PerformanceStatsState",
]
