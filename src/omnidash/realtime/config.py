"""Configuration for real-time client fanout.

Loads from environment variables with OMNIDASH_REALTIME_ prefix.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigRealtime(BaseSettings):
    """Configuration for the WebSocket fanout broadcaster.

    Environment variables use the OMNIDASH_REALTIME_ prefix.
    Example: OMNIDASH_REALTIME_CLIENT_QUEUE_SIZE=512
    """

    model_config = SettingsConfigDict(
        env_prefix="OMNIDASH_REALTIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    enabled: bool = Field(
        default=True,
        description="Relay aggregator notifications to WebSocket clients",
    )
    client_queue_size: int = Field(
        default=256,
        ge=1,
        le=100000,
        description="Frames buffered per client before new frames are dropped for it",
    )
    send_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=120.0,
        description="A client send slower than this disconnects that client",
    )
    welcome_message: str = Field(
        default="Connected to Omnidash real-time event stream",
        description="Text of the frame sent to every new client",
    )
