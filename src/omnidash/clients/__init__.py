"""Correlated request/response clients.

- IntelligenceEventClient: publish a request, await the matching
  completed/failed response or a deadline
- ConfigIntelligenceClient: OMNIDASH_INTELLIGENCE_ settings
"""

from omnidash.clients.config import ConfigIntelligenceClient
from omnidash.clients.intelligence_event_client import (
    IntelligenceEventClient,
    PendingRequest,
)

__all__ = [
    "ConfigIntelligenceClient",
    "IntelligenceEventClient",
    "PendingRequest",
]
