"""PostgreSQL read adapter for agent observability history.

Read-only: the dashboard never writes to these tables. Rows are converted to
the same canonical records the live event path produces.

Table Schema (owned by the agent runtime):
    - agent_actions: tool calls, decisions, success/error outcomes
    - agent_routing_decisions: router selections with confidence and timing
    - agent_transformation_events: agent role hand-offs
    - router_performance_metrics: per-query router timing samples
"""

from __future__ import annotations

import json
import logging
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import asyncpg

from omnidash.events.models import (
    AgentAction,
    AgentSummaryRow,
    PerformanceMetric,
    RoutingDecision,
    TransformationEvent,
)
from omnidash.storage.config import ConfigHistoryStorage

if TYPE_CHECKING:
    from asyncpg import Connection, Pool

logger = logging.getLogger(__name__)

_SQL_RECENT_ACTIONS = """
    SELECT id, correlation_id, agent_name, action_type, action_name,
           action_details, debug_mode, duration_ms, created_at
    FROM agent_actions
    ORDER BY created_at DESC
    LIMIT $1
"""

_SQL_AGENT_SUMMARY = """
    SELECT
        COALESCE(ard.selected_agent, aa.agent_name) AS agent,
        COUNT(DISTINCT COALESCE(aa.id, ard.id)) AS total_requests,
        AVG(COALESCE(ard.routing_time_ms, aa.duration_ms, 0)) AS avg_routing_time,
        AVG(COALESCE(ard.confidence_score, 0)) AS avg_confidence
    FROM agent_actions aa
    FULL OUTER JOIN agent_routing_decisions ard
        ON aa.correlation_id = ard.correlation_id
    WHERE (aa.created_at >= NOW() - $1::interval)
       OR (ard.created_at >= NOW() - $1::interval)
    GROUP BY COALESCE(ard.selected_agent, aa.agent_name)
    HAVING COUNT(DISTINCT COALESCE(aa.id, ard.id)) > 0
    ORDER BY total_requests DESC
    LIMIT $2
"""

_SQL_RECENT_ROUTING_DECISIONS = """
    SELECT id, correlation_id, user_request, selected_agent, confidence_score,
           routing_strategy, alternatives, reasoning, routing_time_ms, created_at
    FROM agent_routing_decisions
    WHERE ($1::text IS NULL OR selected_agent = $1)
      AND ($2::numeric IS NULL OR confidence_score >= $2)
    ORDER BY created_at DESC
    LIMIT $3
"""

_SQL_RECENT_TRANSFORMATIONS = """
    SELECT id, correlation_id, source_agent, target_agent, transformation_reason,
           transformation_duration_ms, success, confidence_score, created_at
    FROM agent_transformation_events
    ORDER BY created_at DESC
    LIMIT $1
"""

_SQL_PERFORMANCE_METRICS = """
    SELECT id, correlation_id, query_text, routing_duration_ms, cache_hit,
           candidates_evaluated, trigger_match_strategy, created_at
    FROM router_performance_metrics
    ORDER BY created_at DESC
    LIMIT $1
"""

_SQL_DECISION_FOR_CORRELATION = """
    SELECT id, correlation_id, user_request, selected_agent, confidence_score,
           routing_strategy, alternatives, reasoning, routing_time_ms,
           actual_success, trigger_confidence, context_confidence,
           capability_confidence, historical_confidence, created_at
    FROM agent_routing_decisions
    WHERE correlation_id::text = $1
    ORDER BY created_at ASC
    LIMIT $2
"""

_SQL_ACTIONS_FOR_CORRELATION = """
    SELECT id, correlation_id, agent_name, action_type, action_name,
           action_details, debug_mode, duration_ms, created_at
    FROM agent_actions
    WHERE correlation_id::text = $1
    ORDER BY created_at ASC
"""


def _row_dict(row: Any) -> dict[str, Any]:
    return dict(row.items()) if hasattr(row, "items") else dict(row)


async def _init_connection(conn: Connection) -> None:
    """Decode json/jsonb columns to Python objects."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


class IntelligenceHistoryStore:
    """PostgreSQL reads for hydration, fallback and execution traces.

    Example:
        >>> store = IntelligenceHistoryStore(ConfigHistoryStorage())
        >>> await store.initialize()
        >>> try:
        ...     actions = await store.fetch_recent_actions(100)
        ... finally:
        ...     await store.close()
    """

    def __init__(self, config: ConfigHistoryStorage) -> None:
        self._config = config
        self._pool: Pool | None = None

    @property
    def config(self) -> ConfigHistoryStorage:
        return self._config

    @property
    def is_initialized(self) -> bool:
        """Check if the store is initialized and ready for use."""
        return self._pool is not None

    async def initialize(self) -> None:
        """Initialize connection pool.

        Raises:
            asyncpg.PostgresError: If connection fails.
            OSError: If the host is unreachable.
        """
        if self._pool is not None:
            logger.warning("IntelligenceHistoryStore already initialized, skipping")
            return

        self._pool = await asyncpg.create_pool(
            dsn=self._config.connection_url(reveal_password=True),
            min_size=self._config.pool_min_size,
            max_size=self._config.pool_max_size,
            command_timeout=self._config.query_timeout_seconds,
            init=_init_connection,
        )

        logger.info(
            "IntelligenceHistoryStore initialized",
            extra={
                "dsn": self._config.connection_url(),
                "pool_min_size": self._config.pool_min_size,
                "pool_max_size": self._config.pool_max_size,
            },
        )

    async def close(self) -> None:
        """Close connection pool. Safe to call multiple times."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("IntelligenceHistoryStore closed")

    def _require_pool(self) -> Pool:
        if self._pool is None:
            raise RuntimeError(
                "IntelligenceHistoryStore not initialized. Call initialize() first."
            )
        return self._pool

    # =========================================================================
    # Queries
    # =========================================================================

    async def fetch_recent_actions(self, limit: int) -> list[AgentAction]:
        """Most recent actions, newest first."""
        rows = await self._require_pool().fetch(_SQL_RECENT_ACTIONS, limit)
        return [AgentAction.model_validate(_row_dict(row)) for row in rows]

    async def fetch_agent_summary(
        self,
        window: timedelta = timedelta(hours=24),
        limit: int = 50,
    ) -> list[AgentSummaryRow]:
        """Per-agent aggregate over actions joined with routing decisions."""
        rows = await self._require_pool().fetch(_SQL_AGENT_SUMMARY, window, limit)
        return [AgentSummaryRow.model_validate(_row_dict(row)) for row in rows]

    async def fetch_recent_routing_decisions(
        self,
        limit: int,
        agent: str | None = None,
        min_confidence: float | None = None,
    ) -> list[RoutingDecision]:
        rows = await self._require_pool().fetch(
            _SQL_RECENT_ROUTING_DECISIONS, agent, min_confidence, limit
        )
        return [RoutingDecision.model_validate(_row_dict(row)) for row in rows]

    async def fetch_recent_transformations(
        self, limit: int
    ) -> list[TransformationEvent]:
        rows = await self._require_pool().fetch(_SQL_RECENT_TRANSFORMATIONS, limit)
        return [TransformationEvent.model_validate(_row_dict(row)) for row in rows]

    async def fetch_performance_metrics(self, limit: int) -> list[PerformanceMetric]:
        rows = await self._require_pool().fetch(_SQL_PERFORMANCE_METRICS, limit)
        return [PerformanceMetric.model_validate(_row_dict(row)) for row in rows]

    async def fetch_routing_decisions_for_correlation(
        self, correlation_id: str, limit: int = 1
    ) -> list[dict[str, Any]]:
        """Raw decision rows (including confidence breakdown) for one correlation id."""
        rows = await self._require_pool().fetch(
            _SQL_DECISION_FOR_CORRELATION, correlation_id, limit
        )
        return [_row_dict(row) for row in rows]

    async def fetch_actions_for_correlation(
        self, correlation_id: str
    ) -> list[AgentAction]:
        """Actions for one correlation id, oldest first."""
        rows = await self._require_pool().fetch(
            _SQL_ACTIONS_FOR_CORRELATION, correlation_id
        )
        return [AgentAction.model_validate(_row_dict(row)) for row in rows]

    async def ping(self) -> dict[str, Any]:
        """Round-trip a trivial query.

        Returns:
            Latency in milliseconds plus server version and time.
        """
        started = time.perf_counter()
        row = await self._require_pool().fetchrow(
            "SELECT 1 AS check, NOW() AS current_time, version() AS pg_version"
        )
        latency_ms = (time.perf_counter() - started) * 1000
        version = str(row["pg_version"])[:50] if row is not None else "unknown"
        return {
            "latency_ms": round(latency_ms, 2),
            "version": version,
            "current_time": row["current_time"].isoformat() if row is not None else None,
        }


__all__ = ["IntelligenceHistoryStore"]
