"""Omnidash - real-time agent observability backend.

Aggregates agent activity events from the event bus into in-memory metrics,
serves them over HTTP with historical and synthetic fallback, relays updates
to WebSocket clients and bridges correlated requests to the intelligence
worker.

Submodules:
    events: Topic names, canonical records, message normalization
    aggregators: Streaming in-memory aggregation
    consumers: Event bus subscription loop
    clients: Correlated request/response bridge
    storage: PostgreSQL history queries and startup hydration
    services: Three-tier reads, synthetic data, service health
    realtime: WebSocket fanout
    app: FastAPI application
    config: Settings and feature flags
"""

__version__ = "0.1.0"
