"""Tests for the dashboard HTTP routes and real-time socket.

The application is built with injected components: a real aggregator and
fallback service, no Kafka consumer, and a mocked intelligence client where
the request bridge is exercised.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from omnidash.aggregators import IntelligenceAggregator
from omnidash.app import AppComponents, create_app
from omnidash.config import Settings
from omnidash.events.models import AgentAction
from omnidash.lib.errors import (
    EnumCoreErrorCode,
    IntelligenceRemoteError,
    IntelligenceTimeoutError,
    OnexError,
)
from omnidash.realtime import ConfigRealtime, FanoutBroadcaster
from omnidash.services import FallbackQueryService

API = "/api/intelligence"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        enable_event_consumer=False,
        enable_intelligence_requests=False,
        enable_postgres=False,
    )


@pytest.fixture
def components(aggregator: IntelligenceAggregator, clock) -> AppComponents:
    return AppComponents(
        aggregator=aggregator,
        queries=FallbackQueryService(aggregator, clock=clock),
        broadcaster=FanoutBroadcaster(ConfigRealtime(), aggregator.notifications),
    )


@pytest.fixture
def make_client(settings: Settings) -> Iterator[Callable[..., TestClient]]:
    clients: list[TestClient] = []

    def _make(components: AppComponents, **kwargs: bool) -> TestClient:
        client = TestClient(create_app(settings, components=components), **kwargs)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def api(make_client: Callable[..., TestClient], components: AppComponents) -> TestClient:
    return make_client(components)


@pytest.fixture
def intelligence_client() -> MagicMock:
    client = MagicMock()
    client.is_started = True
    client.start = AsyncMock()
    client.stop = AsyncMock()
    client.request_pattern_discovery = AsyncMock(
        return_value={"patterns": [{"name": "effect"}]}
    )
    return client


@pytest.fixture
def bridge_api(
    make_client: Callable[..., TestClient],
    components: AppComponents,
    intelligence_client: MagicMock,
) -> TestClient:
    components.client = intelligence_client
    return make_client(components)


# =============================================================================
# Fallback Reads
# =============================================================================


class TestFallbackReads:
    def test_synthetic_actions_are_flagged(self, api: TestClient) -> None:
        response = api.get(f"{API}/actions/recent")

        assert response.status_code == 200
        assert response.headers["X-Data-Source"] == "synthetic"
        assert response.headers["X-Mock-Data"] == "true"
        body = response.json()
        assert len(body) == 5
        assert body[0]["agentName"] == "agent-api"
        assert "createdAt" in body[0]

    def test_live_actions_are_not_flagged(
        self,
        api: TestClient,
        aggregator: IntelligenceAggregator,
        make_action: Callable[..., AgentAction],
    ) -> None:
        aggregator.handle_agent_action(make_action(id="live-1"))

        response = api.get(f"{API}/actions/recent", params={"limit": 10})

        assert response.headers["X-Data-Source"] == "live"
        assert "X-Mock-Data" not in response.headers
        assert [a["id"] for a in response.json()] == ["live-1"]

    def test_agent_summary_disables_caching(self, api: TestClient) -> None:
        response = api.get(f"{API}/agents/summary", params={"timeWindow": "7d"})

        assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
        assert response.headers["Pragma"] == "no-cache"
        assert {"agent", "totalRequests", "successRate", "avgRoutingTime"} <= set(
            response.json()[0]
        )

    def test_agent_actions_timeline(self, api: TestClient) -> None:
        response = api.get(f"{API}/agents/agent-api/actions", params={"timeWindow": "1h"})

        assert response.status_code == 200
        assert [a["agentName"] for a in response.json()] == ["agent-api"]

    def test_routing_decisions_filter(self, api: TestClient) -> None:
        response = api.get(f"{API}/routing/decisions", params={"minConfidence": 0.9})

        agents = {d["selectedAgent"] for d in response.json()}
        assert agents == {"agent-api", "agent-database"}

    def test_transformations_envelope(self, api: TestClient) -> None:
        body = api.get(f"{API}/transformations/recent").json()

        assert body["total"] == 3
        assert body["transformations"][0]["sourceAgent"] == "agent-polymorphic"

    def test_performance_metrics_envelope(self, api: TestClient) -> None:
        body = api.get(f"{API}/performance/metrics").json()

        assert body["total"] == 4
        assert body["stats"]["totalQueries"] == 4
        assert body["stats"]["cacheHitRate"] == 50

    def test_performance_summary(self, api: TestClient) -> None:
        response = api.get(f"{API}/performance/summary")

        assert response.headers["X-Data-Source"] == "synthetic"
        assert response.json()["cacheHitCount"] == 2


# =============================================================================
# Execution Trace
# =============================================================================


class TestExecutionTrace:
    def test_mock_trace(self, api: TestClient) -> None:
        response = api.get(f"{API}/execution/mock-corr-1")

        assert response.status_code == 200
        assert response.headers["X-Mock-Data"] == "true"
        assert response.json()["summary"]["totalDuration"] == 110

    def test_unknown_trace_is_404(self, api: TestClient) -> None:
        response = api.get(f"{API}/execution/corr-missing")

        assert response.status_code == 404
        assert response.json() == {
            "error": "Execution not found",
            "message": "No routing decision found for correlation ID: corr-missing",
        }


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    def test_health_without_consumer(self, api: TestClient) -> None:
        body = api.get(f"{API}/health").json()

        assert body["status"] == "unhealthy"
        assert body["eventsProcessed"] == 0
        assert body["recentActionsCount"] == 0
        assert "timestamp" in body

    def test_services_health_reports_disabled_services(self, api: TestClient) -> None:
        response = api.get(f"{API}/services/health")

        assert response.status_code == 503
        body = response.json()
        assert body["overallStatus"] == "unhealthy"
        assert body["summary"]["down"] == 3


# =============================================================================
# Pattern Discovery Bridge
# =============================================================================


class TestPatternDiscovery:
    def test_disabled_bridge_is_503(self, api: TestClient) -> None:
        response = api.get(f"{API}/analysis/patterns")

        assert response.status_code == 503

    def test_success(self, bridge_api: TestClient, intelligence_client: MagicMock) -> None:
        response = bridge_api.get(
            f"{API}/analysis/patterns", params={"path": "src/**/*.py", "lang": "python"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "patterns": [{"name": "effect"}],
            "meta": {"sourcePath": "src/**/*.py", "language": "python"},
        }
        intelligence_client.request_pattern_discovery.assert_awaited_once_with(
            source_path="src/**/*.py", language="python", timeout_ms=6000
        )

    @pytest.mark.parametrize(("timeout", "expected"), [(10, 1000), (999999, 60000), (2500, 2500)])
    def test_timeout_is_clamped(
        self,
        bridge_api: TestClient,
        intelligence_client: MagicMock,
        timeout: int,
        expected: int,
    ) -> None:
        bridge_api.get(f"{API}/analysis/patterns", params={"timeout": timeout})

        call = intelligence_client.request_pattern_discovery.await_args
        assert call.kwargs["timeout_ms"] == expected

    def test_client_started_on_demand(
        self, bridge_api: TestClient, intelligence_client: MagicMock
    ) -> None:
        intelligence_client.is_started = False
        intelligence_client.start.reset_mock()

        response = bridge_api.get(f"{API}/analysis/patterns")

        assert response.status_code == 200
        intelligence_client.start.assert_awaited_once()

    def test_timeout_is_504(
        self, bridge_api: TestClient, intelligence_client: MagicMock
    ) -> None:
        intelligence_client.request_pattern_discovery.side_effect = IntelligenceTimeoutError(
            "CORR-1", 6000
        )

        response = bridge_api.get(f"{API}/analysis/patterns")

        assert response.status_code == 504
        assert response.json()["correlationId"] == "CORR-1"

    def test_remote_failure_is_502(
        self, bridge_api: TestClient, intelligence_client: MagicMock
    ) -> None:
        intelligence_client.request_pattern_discovery.side_effect = IntelligenceRemoteError(
            "CORR-1", "INVALID_PATH", "no such path"
        )

        response = bridge_api.get(f"{API}/analysis/patterns")

        assert response.status_code == 502
        assert response.json() == {
            "message": "no such path",
            "errorCode": "INVALID_PATH",
            "correlationId": "CORR-1",
        }

    def test_not_started_is_503(
        self, bridge_api: TestClient, intelligence_client: MagicMock
    ) -> None:
        intelligence_client.request_pattern_discovery.side_effect = OnexError(
            code=EnumCoreErrorCode.NOT_STARTED, message="Client not started"
        )

        response = bridge_api.get(f"{API}/analysis/patterns")

        assert response.status_code == 503
        assert response.json() == {"message": "Client not started"}

    def test_unexpected_error_is_502(
        self, bridge_api: TestClient, intelligence_client: MagicMock
    ) -> None:
        intelligence_client.request_pattern_discovery.side_effect = RuntimeError("broker gone")

        response = bridge_api.get(f"{API}/analysis/patterns")

        assert response.status_code == 502
        assert response.json() == {"message": "broker gone"}


# =============================================================================
# Errors
# =============================================================================


class TestUnhandledErrors:
    def test_unhandled_error_is_500_json(
        self, make_client: Callable[..., TestClient], components: AppComponents
    ) -> None:
        queries = MagicMock()
        queries.get_recent_actions = AsyncMock(side_effect=RuntimeError("boom"))
        components.queries = queries
        api = make_client(components, raise_server_exceptions=False)

        response = api.get(f"{API}/actions/recent")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error", "message": "boom"}


# =============================================================================
# Real-time Socket
# =============================================================================


class TestRealtimeSocket:
    def test_welcome_frame(self, api: TestClient) -> None:
        with api.websocket_connect("/ws") as websocket:
            assert websocket.receive_json() == {
                "type": "connected",
                "message": "Connected to Omnidash real-time event stream",
            }
            websocket.send_text(json.dumps({"action": "subscribe", "topics": ["agent-actions"]}))

    def test_socket_refused_when_disabled(
        self, make_client: Callable[..., TestClient], components: AppComponents
    ) -> None:
        components.broadcaster = None
        api = make_client(components)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with api.websocket_connect("/ws"):
                pass

        assert exc_info.value.code == 1008
