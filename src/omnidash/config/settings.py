"""Omnidash top-level settings.

Feature flags decide which components the application wires at startup.
Component-level settings (broker addresses, buffer sizes, database
credentials) live with each component under its own environment prefix:

    OMNIDASH_CONSUMER_*      event subscription (omnidash.consumers)
    OMNIDASH_INTELLIGENCE_*  request/response bridge (omnidash.clients)
    OMNIDASH_AGGREGATOR_*    in-memory aggregation (omnidash.aggregators)
    OMNIDASH_STORAGE_*       PostgreSQL history (omnidash.storage)
    OMNIDASH_REALTIME_*      WebSocket fanout (omnidash.realtime)

A disabled component is never constructed. The HTTP surface keeps answering
from whatever tiers remain (live, historical or synthetic).

To disable a component entirely, set its flag to false:
    OMNIDASH_ENABLE_POSTGRES=false
    OMNIDASH_ENABLE_EVENT_CONSUMER=false
    OMNIDASH_ENABLE_INTELLIGENCE_REQUESTS=false
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, PrivateAttr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from omnidash.aggregators.config import ConfigIntelligenceAggregator
from omnidash.clients.config import ConfigIntelligenceClient
from omnidash.consumers.config import ConfigIntelligenceConsumer
from omnidash.realtime.config import ConfigRealtime
from omnidash.storage.config import ConfigHistoryStorage


def _find_and_load_env() -> None:
    """Load .env file from project root."""
    from dotenv import load_dotenv

    current = Path(__file__).resolve().parent
    for _ in range(10):
        env_file = current / ".env"
        if env_file.exists():
            load_dotenv(env_file, override=False)
            return
        parent = current.parent
        if parent == current:
            break
        current = parent


_find_and_load_env()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Feature flags and server settings for the dashboard backend."""

    model_config = SettingsConfigDict(
        env_prefix="OMNIDASH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Private attribute for warning tracking (not serialized, instance-level state)
    _defaults_warned: bool = PrivateAttr(default=False)

    # =========================================================================
    # FEATURE FLAGS
    # =========================================================================
    enable_event_consumer: bool = Field(
        default=True,
        description="Subscribe to the agent event topics and aggregate live",
    )
    enable_event_preload: bool = Field(
        default=True,
        description=(
            "Hydrate the aggregator from PostgreSQL before subscribing. "
            "Only effective when ENABLE_POSTGRES is also true."
        ),
    )
    enable_intelligence_requests: bool = Field(
        default=True,
        description="Start the correlation request/response bridge",
    )
    enable_postgres: bool = Field(
        default=False,
        description=(
            "Enable PostgreSQL history reads. When True, OMNIDASH_STORAGE_* "
            "must be configured. Defaults to False for safety."
        ),
    )
    enable_real_time_events: bool = Field(
        default=True,
        description="Serve the /ws endpoint and relay aggregator notifications",
    )

    # =========================================================================
    # HTTP SERVER
    # =========================================================================
    api_host: str = Field(
        default="0.0.0.0",  # noqa: S104
        description="Interface the HTTP server binds to",
    )
    api_port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port the HTTP server listens on",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root logging level",
    )

    def validate_required_services(self) -> list[str]:
        """Validate that every enabled component can load its configuration.

        Returns:
            List of validation error messages. Empty list means valid.

        Example:
            >>> settings = Settings(enable_postgres=True)
            >>> errors = settings.validate_required_services()
            >>> if errors:
            ...     raise ValueError(f"Missing configuration: {errors}")
        """
        errors: list[str] = []
        checks: list[tuple[bool, str, type[BaseSettings]]] = [
            (self.enable_event_consumer, "OMNIDASH_CONSUMER_", ConfigIntelligenceConsumer),
            (self.enable_event_consumer, "OMNIDASH_AGGREGATOR_", ConfigIntelligenceAggregator),
            (
                self.enable_intelligence_requests,
                "OMNIDASH_INTELLIGENCE_",
                ConfigIntelligenceClient,
            ),
            (self.enable_postgres, "OMNIDASH_STORAGE_", ConfigHistoryStorage),
            (self.enable_real_time_events, "OMNIDASH_REALTIME_", ConfigRealtime),
        ]
        for enabled, prefix, config_cls in checks:
            if not enabled:
                continue
            try:
                config_cls()
            except ValidationError as e:
                for error in e.errors():
                    field = ".".join(str(part) for part in error["loc"])
                    errors.append(f"{prefix}{field.upper()}: {error['msg']}")

        return errors

    def log_default_warnings(self) -> None:
        """Log informational messages about disabled components.

        Logged once per instance. Call `reset_warnings()` to log again.
        """
        if self._defaults_warned:
            return
        self._defaults_warned = True

        if not self.enable_postgres:
            logger.info(
                "PostgreSQL is disabled (OMNIDASH_ENABLE_POSTGRES=false). "
                "Reads fall back to synthetic data when live data is empty."
            )
        elif not self.enable_event_preload:
            logger.info(
                "Event preload is disabled (OMNIDASH_ENABLE_EVENT_PRELOAD=false). "
                "Live aggregates start empty."
            )

        if not self.enable_event_consumer:
            logger.info(
                "Event consumer is disabled (OMNIDASH_ENABLE_EVENT_CONSUMER=false). "
                "No live aggregation will take place."
            )

        if not self.enable_intelligence_requests:
            logger.info(
                "Intelligence requests are disabled "
                "(OMNIDASH_ENABLE_INTELLIGENCE_REQUESTS=false)."
            )

        if not self.enable_real_time_events:
            logger.info(
                "Real-time events are disabled (OMNIDASH_ENABLE_REAL_TIME_EVENTS=false). "
                "The /ws endpoint will refuse connections."
            )

    def reset_warnings(self) -> None:
        """Reset the warning state for test isolation."""
        self._defaults_warned = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get singleton settings instance.

    Note:
        For test isolation, use `clear_settings_cache()` to reset the
        singleton before each test that needs fresh settings.
    """
    instance = Settings()
    instance.log_default_warnings()
    return instance


def clear_settings_cache() -> None:
    """Clear the settings singleton cache for test isolation."""
    get_settings.cache_clear()
