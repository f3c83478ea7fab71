"""Health checks for the services the dashboard depends on.

Each check reports ``up``, ``warning`` or ``down`` and never raises.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from omnidash.clients.intelligence_event_client import IntelligenceEventClient
    from omnidash.consumers.intelligence_event_consumer import IntelligenceEventConsumer
    from omnidash.storage.intelligence_history_store import IntelligenceHistoryStore

logger = logging.getLogger(__name__)

# Round-trips slower than this are reported as a warning.
POSTGRES_WARNING_LATENCY_MS = 1000


class EnumServiceStatus(StrEnum):
    UP = "up"
    WARNING = "warning"
    DOWN = "down"


@dataclass
class ServiceHealthCheck:
    """Result of one service check."""

    service: str
    status: EnumServiceStatus
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _disabled(service: str) -> ServiceHealthCheck:
    return ServiceHealthCheck(
        service=service,
        status=EnumServiceStatus.DOWN,
        error="disabled",
        details={"enabled": False},
    )


async def check_postgres(store: IntelligenceHistoryStore | None) -> ServiceHealthCheck:
    if store is None:
        return _disabled("PostgreSQL")

    started = time.perf_counter()
    try:
        if not store.is_initialized:
            await store.initialize()
        result = await store.ping()
    except Exception as e:
        return ServiceHealthCheck(
            service="PostgreSQL",
            status=EnumServiceStatus.DOWN,
            latency_ms=round((time.perf_counter() - started) * 1000, 2),
            error=str(e),
        )

    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    return ServiceHealthCheck(
        service="PostgreSQL",
        status=(
            EnumServiceStatus.UP
            if latency_ms < POSTGRES_WARNING_LATENCY_MS
            else EnumServiceStatus.WARNING
        ),
        latency_ms=latency_ms,
        details={"version": result["version"], "current_time": result["current_time"]},
    )


async def check_event_consumer(
    consumer: IntelligenceEventConsumer | None,
) -> ServiceHealthCheck:
    if consumer is None:
        return _disabled("Event Consumer")

    health = consumer.get_health_status()
    return ServiceHealthCheck(
        service="Event Consumer",
        status=(
            EnumServiceStatus.UP
            if health["status"] == "healthy"
            else EnumServiceStatus.DOWN
        ),
        details={
            "is_running": consumer.is_running,
            "events_processed": health["events_processed"],
            "recent_actions_count": health["recent_actions_count"],
        },
    )


async def check_intelligence_client(
    client: IntelligenceEventClient | None,
) -> ServiceHealthCheck:
    if client is None:
        return _disabled("Intelligence Requests")

    healthy = await client.health_check()
    return ServiceHealthCheck(
        service="Intelligence Requests",
        status=EnumServiceStatus.UP if healthy else EnumServiceStatus.DOWN,
        details={
            "consumer_group_id": client.consumer_group_id,
            "pending_requests": client.pending_count,
        },
    )


async def check_all_services(
    store: IntelligenceHistoryStore | None,
    consumer: IntelligenceEventConsumer | None,
    client: IntelligenceEventClient | None,
) -> list[ServiceHealthCheck]:
    return [
        await check_postgres(store),
        await check_event_consumer(consumer),
        await check_intelligence_client(client),
    ]


def summarize(checks: list[ServiceHealthCheck]) -> tuple[int, dict[str, Any]]:
    """Build the services health response.

    Returns:
        (HTTP status code, body). 200 only when every service is up.
    """
    all_up = all(check.status is EnumServiceStatus.UP for check in checks)
    body = {
        "timestamp": datetime.now(UTC).isoformat(),
        "overallStatus": "healthy" if all_up else "unhealthy",
        "services": [check.to_dict() for check in checks],
        "summary": {
            "total": len(checks),
            "up": sum(1 for c in checks if c.status is EnumServiceStatus.UP),
            "down": sum(1 for c in checks if c.status is EnumServiceStatus.DOWN),
            "warning": sum(1 for c in checks if c.status is EnumServiceStatus.WARNING),
        },
    }
    if not all_up:
        logger.info(
            "Service health degraded",
            extra={"summary": body["summary"]},
        )
    return (200 if all_up else 503), body


__all__ = [
    "EnumServiceStatus",
    "ServiceHealthCheck",
    "check_all_services",
    "check_event_consumer",
    "check_intelligence_client",
    "check_postgres",
    "summarize",
]
