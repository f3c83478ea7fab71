"""Kafka consumers for agent observability events.

Key Components:
    - IntelligenceEventConsumer: Subscription loop feeding the aggregator
    - ConfigIntelligenceConsumer: Configuration for the consumer
    - ConsumerMetrics: Metrics tracking for observability

Architecture:
    ```
    Kafka Topics (routing/actions/transformations/performance)
           |
           v
    IntelligenceEventConsumer
           |
           v (apply)
    IntelligenceAggregator
    ```

Example:
    >>> from omnidash.consumers import (
    ...     ConfigIntelligenceConsumer,
    ...     IntelligenceEventConsumer,
    ... )
    >>> consumer = IntelligenceEventConsumer(ConfigIntelligenceConsumer(), aggregator)
    >>> async with consumer:
    ...     await consumer.run()
"""

from __future__ import annotations

from omnidash.consumers.config import ConfigIntelligenceConsumer
from omnidash.consumers.intelligence_event_consumer import (
    ConsumerMetrics,
    IntelligenceEventConsumer,
)

__all__ = [
    # Main consumer
    "IntelligenceEventConsumer",
    # Configuration
    "ConfigIntelligenceConsumer",
    # Metrics
    "ConsumerMetrics",
]
