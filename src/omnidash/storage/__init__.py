"""Read-only PostgreSQL access to agent observability history.

Provides the history store used for startup hydration, HTTP fallback reads
and execution traces.
"""

from omnidash.storage.config import ConfigHistoryStorage
from omnidash.storage.hydration_loader import HydrationLoader, HydrationResult
from omnidash.storage.intelligence_history_store import IntelligenceHistoryStore

__all__ = [
    "ConfigHistoryStorage",
    "HydrationLoader",
    "HydrationResult",
    "IntelligenceHistoryStore",
]
