"""Configuration for the intelligence request/response client.

Loads from environment variables with OMNIDASH_INTELLIGENCE_ prefix.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from omnidash.events.topics import TopicBase


class ConfigIntelligenceClient(BaseSettings):
    """Configuration for the correlated intelligence request client.

    Environment variables use the OMNIDASH_INTELLIGENCE_ prefix.
    Example: OMNIDASH_INTELLIGENCE_REQUEST_TIMEOUT_MS=10000
    """

    model_config = SettingsConfigDict(
        env_prefix="OMNIDASH_INTELLIGENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Kafka connection
    bootstrap_servers: str = Field(
        default="192.168.86.200:9092",
        description="Kafka bootstrap servers (comma-separated)",
    )
    client_id: str = Field(
        default="omnidash-intelligence-adapter",
        description="Kafka client ID",
    )
    consumer_group_prefix: str = Field(
        default="omnidash-intel",
        description="Prefix for the per-instance response consumer group",
    )

    # Topics
    request_topic: str = Field(
        default=TopicBase.CODE_ANALYSIS_REQUESTED.value,
        description="Topic requests are published to",
    )
    completed_topic: str = Field(
        default=TopicBase.CODE_ANALYSIS_COMPLETED.value,
        description="Topic carrying completed responses",
    )
    failed_topic: str = Field(
        default=TopicBase.CODE_ANALYSIS_FAILED.value,
        description="Topic carrying failed responses",
    )

    # Requests
    request_timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=60000,
        description="Default deadline for a correlated request in milliseconds",
    )
    service_name: str = Field(
        default="omnidash",
        description="Originating-service tag written into request envelopes",
    )

    # Startup
    partition_assignment_timeout_seconds: float = Field(
        default=10.0,
        ge=0.5,
        le=120.0,
        description="Maximum wait for response topic partition assignment",
    )

    # Transport errors
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Delay before the response consumer resumes after a Kafka error",
    )
