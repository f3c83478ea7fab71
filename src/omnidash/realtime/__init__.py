"""Real-time relay of aggregator notifications to WebSocket clients."""

from omnidash.realtime.broadcaster import ClientSink, FanoutBroadcaster, build_frame
from omnidash.realtime.config import ConfigRealtime

__all__ = [
    "ClientSink",
    "ConfigRealtime",
    "FanoutBroadcaster",
    "build_frame",
]
