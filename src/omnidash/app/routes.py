# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Dashboard read API and real-time socket.

Every list read goes through ``FallbackQueryService`` and reports the tier
that answered in the ``X-Data-Source`` header; synthetic answers also carry
``X-Mock-Data: true``.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, WebSocket, status
from fastapi.responses import JSONResponse

from omnidash.app.components import AppComponents
from omnidash.events.models import to_wire
from omnidash.lib.errors import (
    EnumCoreErrorCode,
    IntelligenceRemoteError,
    IntelligenceTimeoutError,
    OnexError,
)
from omnidash.services.fallback_query import TieredResult
from omnidash.services.service_health import check_all_services, summarize

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

PATTERN_TIMEOUT_DEFAULT_MS = 6000
PATTERN_TIMEOUT_MIN_MS = 1000
PATTERN_TIMEOUT_MAX_MS = 60000

router = APIRouter(prefix="/api/intelligence", tags=["Intelligence"])
socket_router = APIRouter(tags=["Realtime"])


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def _tiered_response(
    result: TieredResult[Any],
    content: Any = None,
    extra_headers: dict[str, str] | None = None,
) -> JSONResponse:
    headers = {"X-Data-Source": result.source.value, **(extra_headers or {})}
    if result.is_synthetic:
        headers["X-Mock-Data"] = "true"
    return JSONResponse(
        content=to_wire(result.data if content is None else content),
        headers=headers,
    )


# ============================================================================
# Aggregated reads
# ============================================================================


@router.get("/agents/summary")
async def agents_summary(
    time_window: str = Query(default="24h", alias="timeWindow"),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    """Per-agent metrics: request count, average routing time and confidence."""
    result = await components.queries.get_agent_summary(time_window)
    return _tiered_response(result, extra_headers=NO_CACHE_HEADERS)


@router.get("/actions/recent")
async def recent_actions(
    limit: int | None = Query(default=None),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    result = await components.queries.get_recent_actions(limit)
    return _tiered_response(result)


@router.get("/agents/{agent}/actions")
async def agent_actions(
    agent: str,
    time_window: str = Query(default="1h", alias="timeWindow"),
    limit: int | None = Query(default=None),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    """Action timeline for one agent over 1h, 24h or 7d."""
    result = await components.queries.get_actions_by_agent(agent, time_window, limit)
    return _tiered_response(result)


@router.get("/routing/decisions")
async def routing_decisions(
    limit: int | None = Query(default=None),
    agent: str | None = Query(default=None),
    min_confidence: float | None = Query(default=None, alias="minConfidence"),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    result = await components.queries.get_routing_decisions(
        agent=agent, min_confidence=min_confidence, limit=limit
    )
    return _tiered_response(result)


@router.get("/transformations/recent")
async def recent_transformations(
    limit: int | None = Query(default=None),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    result = await components.queries.get_recent_transformations(limit)
    return _tiered_response(
        result, {"transformations": result.data, "total": len(result.data)}
    )


@router.get("/performance/metrics")
async def performance_metrics(
    limit: int | None = Query(default=None),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    result = await components.queries.get_performance_metrics(limit)
    snapshot = result.data
    return _tiered_response(
        result,
        {
            "metrics": snapshot.metrics,
            "stats": snapshot.stats,
            "total": len(snapshot.metrics),
        },
    )


@router.get("/performance/summary")
async def performance_summary(
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    result = await components.queries.get_performance_metrics()
    return _tiered_response(result, result.data.stats)


@router.get("/execution/{correlation_id}")
async def execution_trace(
    correlation_id: str,
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    """Routing decision, ordered actions and summary for one correlation id."""
    result = await components.queries.get_execution_trace(correlation_id)
    if result is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "Execution not found",
                "message": f"No routing decision found for correlation ID: {correlation_id}",
            },
        )
    return _tiered_response(result)


# ============================================================================
# Health
# ============================================================================


@router.get("/health")
async def health(components: AppComponents = Depends(get_components)) -> dict[str, Any]:
    """Event consumer status.

    Status Codes:
        200: Always; ``status`` reports healthy or unhealthy
    """
    if components.consumer is not None:
        snapshot = components.consumer.get_health_status()
    else:
        snapshot = {
            "status": "unhealthy",
            "events_processed": components.aggregator.tracked_agent_count,
            "recent_actions_count": components.aggregator.recent_actions_count,
            "timestamp": datetime.now(UTC).isoformat(),
        }
    return {
        "status": snapshot["status"],
        "eventsProcessed": snapshot["events_processed"],
        "recentActionsCount": snapshot["recent_actions_count"],
        "timestamp": snapshot["timestamp"],
    }


@router.get("/services/health")
async def services_health(
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    """Check every dependency.

    Status Codes:
        200: All services up
        503: At least one service down or degraded
    """
    checks = await check_all_services(
        components.store, components.consumer, components.client
    )
    status_code, body = summarize(checks)
    return JSONResponse(status_code=status_code, content=body)


# ============================================================================
# Request/response bridge
# ============================================================================


def _clamp_timeout(timeout: int | None) -> int:
    if not timeout:
        return PATTERN_TIMEOUT_DEFAULT_MS
    return max(PATTERN_TIMEOUT_MIN_MS, min(PATTERN_TIMEOUT_MAX_MS, timeout))


@router.get("/analysis/patterns")
async def analysis_patterns(
    path: str = Query(default="node_*_effect.py"),
    lang: str = Query(default="python"),
    timeout: int | None = Query(default=None),
    components: AppComponents = Depends(get_components),
) -> JSONResponse:
    """Run pattern discovery through the intelligence request bridge.

    Status Codes:
        200: Patterns returned by the worker
        502: Worker reported failure
        503: Request bridge disabled or cannot connect
        504: No response before the deadline
    """
    client = components.client
    if client is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"message": "Intelligence requests are disabled"},
        )

    try:
        if not client.is_started:
            await client.start()
        result = await client.request_pattern_discovery(
            source_path=path,
            language=lang,
            timeout_ms=_clamp_timeout(timeout),
        )
    except IntelligenceTimeoutError as e:
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"message": e.message, "correlationId": e.correlation_id},
        )
    except IntelligenceRemoteError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "message": e.remote_error_message,
                "errorCode": e.remote_error_code,
                "correlationId": e.correlation_id,
            },
        )
    except OnexError as e:
        code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if e.code is EnumCoreErrorCode.NOT_STARTED
            else status.HTTP_502_BAD_GATEWAY
        )
        return JSONResponse(status_code=code, content={"message": e.message})
    except Exception as e:
        logger.warning(
            "Pattern discovery failed",
            extra={"source_path": path, "error": str(e), "error_type": type(e).__name__},
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"message": str(e) or "Pattern discovery failed"},
        )

    patterns = result.get("patterns", []) if isinstance(result, dict) else []
    return JSONResponse(
        content={"patterns": patterns, "meta": {"sourcePath": path, "language": lang}}
    )


# ============================================================================
# Real-time socket
# ============================================================================


@socket_router.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    components: AppComponents = websocket.app.state.components
    if components.broadcaster is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await components.broadcaster.serve(websocket)


__all__ = [
    "get_components",
    "router",
    "socket_router",
]
