"""Tests for dependency health checks."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from omnidash.services import EnumServiceStatus, ServiceHealthCheck, check_all_services
from omnidash.services.service_health import (
    check_event_consumer,
    check_intelligence_client,
    check_postgres,
    summarize,
)


def healthy_store() -> MagicMock:
    store = MagicMock()
    store.is_initialized = True
    store.ping = AsyncMock(
        return_value={
            "latency_ms": 1.2,
            "version": "PostgreSQL 16.1",
            "current_time": "2025-10-27T12:00:00+00:00",
        }
    )
    return store


class TestChecks:
    async def test_disabled_services_report_down(self) -> None:
        checks = await check_all_services(None, None, None)

        assert [c.service for c in checks] == [
            "PostgreSQL",
            "Event Consumer",
            "Intelligence Requests",
        ]
        assert all(c.status is EnumServiceStatus.DOWN for c in checks)
        assert all(c.error == "disabled" for c in checks)

    async def test_postgres_up(self) -> None:
        check = await check_postgres(healthy_store())

        assert check.status is EnumServiceStatus.UP
        assert check.details["version"] == "PostgreSQL 16.1"
        assert check.latency_ms is not None

    async def test_postgres_initializes_lazily(self) -> None:
        store = healthy_store()
        store.is_initialized = False
        store.initialize = AsyncMock()

        await check_postgres(store)

        store.initialize.assert_awaited_once()

    async def test_postgres_failure_reports_down(self) -> None:
        store = healthy_store()
        store.ping.side_effect = OSError("connection refused")

        check = await check_postgres(store)

        assert check.status is EnumServiceStatus.DOWN
        assert check.error == "connection refused"

    async def test_event_consumer(self) -> None:
        consumer = MagicMock()
        consumer.is_running = True
        consumer.get_health_status.return_value = {
            "status": "healthy",
            "events_processed": 7,
            "recent_actions_count": 3,
        }

        check = await check_event_consumer(consumer)

        assert check.status is EnumServiceStatus.UP
        assert check.details == {
            "is_running": True,
            "events_processed": 7,
            "recent_actions_count": 3,
        }

    async def test_intelligence_client_not_started(self) -> None:
        client = MagicMock()
        client.health_check = AsyncMock(return_value=False)
        client.consumer_group_id = "omnidash-intel-1234"
        client.pending_count = 0

        check = await check_intelligence_client(client)

        assert check.status is EnumServiceStatus.DOWN
        assert check.details["consumer_group_id"] == "omnidash-intel-1234"


class TestSummarize:
    def test_all_up(self) -> None:
        status_code, body = summarize(
            [ServiceHealthCheck(service="PostgreSQL", status=EnumServiceStatus.UP)]
        )

        assert status_code == 200
        assert body["overallStatus"] == "healthy"
        assert body["services"][0]["status"] == "up"

    def test_any_not_up_is_unhealthy(self) -> None:
        status_code, body = summarize(
            [
                ServiceHealthCheck(service="PostgreSQL", status=EnumServiceStatus.UP),
                ServiceHealthCheck(service="Event Consumer", status=EnumServiceStatus.WARNING),
                ServiceHealthCheck(service="Intelligence Requests", status=EnumServiceStatus.DOWN),
            ]
        )

        assert status_code == 503
        assert body["overallStatus"] == "unhealthy"
        assert body["summary"] == {"total": 3, "up": 1, "down": 1, "warning": 1}
