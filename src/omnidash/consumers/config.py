"""Configuration for the intelligence event consumer.

Loads from environment variables with OMNIDASH_CONSUMER_ prefix.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from omnidash.events.topics import EVENT_TOPICS


class ConfigIntelligenceConsumer(BaseSettings):
    """Configuration for the agent observability Kafka consumer.

    Environment variables use the OMNIDASH_CONSUMER_ prefix.
    Example: OMNIDASH_CONSUMER_BOOTSTRAP_SERVERS=192.168.86.200:9092
    """

    model_config = SettingsConfigDict(
        env_prefix="OMNIDASH_CONSUMER_",
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
    group_id: str = Field(
        default="omnidash-consumers-v2",
        description="Consumer group ID",
    )
    client_id: str = Field(
        default="omnidash-event-consumer",
        description="Kafka client ID",
    )

    # Topics to subscribe
    topics: list[str] = Field(
        default_factory=lambda: [str(topic) for topic in EVENT_TOPICS],
        description="Kafka topics to consume",
    )

    # Consumer behavior
    auto_offset_reset: str = Field(
        default="earliest",
        description="Where to start consuming if no offset exists",
    )
    enable_auto_commit: bool = Field(
        default=True,
        description="Aggregates are not persisted, so periodic auto-commit is sufficient",
    )
    max_poll_records: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum records per poll",
    )

    # Transport errors
    retry_backoff_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=300.0,
        description="Delay before resuming consumption after a Kafka error",
    )
