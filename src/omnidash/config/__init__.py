"""Omnidash configuration - Pydantic Settings for environment configuration."""

from __future__ import annotations

# Re-export component configs for convenient access
from omnidash.aggregators.config import ConfigIntelligenceAggregator
from omnidash.clients.config import ConfigIntelligenceClient
from omnidash.consumers.config import ConfigIntelligenceConsumer
from omnidash.realtime.config import ConfigRealtime
from omnidash.storage.config import ConfigHistoryStorage

from .settings import Settings, clear_settings_cache, get_settings

__all__ = [
    # Core settings
    "Settings",
    "clear_settings_cache",
    "get_settings",
    # Component configs
    "ConfigHistoryStorage",
    "ConfigIntelligenceAggregator",
    "ConfigIntelligenceClient",
    "ConfigIntelligenceConsumer",
    "ConfigRealtime",
]
