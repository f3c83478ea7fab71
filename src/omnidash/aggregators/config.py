"""Configuration for intelligence aggregation.

Defines buffer capacities and the metrics horizon.
Loads from environment variables with OMNIDASH_AGGREGATOR_ prefix.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigIntelligenceAggregator(BaseSettings):
    """Configuration for the in-memory intelligence aggregator.

    Environment variables use the OMNIDASH_AGGREGATOR_ prefix.
    Example: OMNIDASH_AGGREGATOR_MAX_RECENT_ACTIONS=250
    """

    model_config = SettingsConfigDict(
        env_prefix="OMNIDASH_AGGREGATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ring buffer capacities (most-recent-first, FIFO eviction)
    max_recent_actions: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Capacity of the recent actions buffer",
    )
    max_routing_decisions: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Capacity of the recent routing decisions buffer",
    )
    max_transformations: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Capacity of the recent transformation events buffer",
    )
    max_performance_metrics: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="Capacity of the recent performance metrics buffer",
    )

    # Agent metrics horizon, used for both purge and read visibility
    metrics_window_hours: int = Field(
        default=24,
        ge=1,
        le=168,
        description="Trailing window for per-agent metrics",
    )

    # Idempotency - remember recent explicit event ids
    dedupe_window_size: int = Field(
        default=1000,
        ge=0,
        le=100000,
        description="Number of recent event ids remembered for duplicate detection (0 disables)",
    )
