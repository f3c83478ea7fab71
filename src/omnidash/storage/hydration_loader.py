# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Startup hydration from persisted agent history.

Runs once, before the live subscription is attached. Loads the most recent
actions and the trailing 24h per-agent aggregate. Failures are logged and
reported through ``HydrationResult.loaded``; they never propagate, so a
missing history source degrades to "no data yet" rather than a failed
startup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from omnidash.events.models import AgentAction, AgentSummaryRow
from omnidash.storage.intelligence_history_store import IntelligenceHistoryStore

logger = logging.getLogger(__name__)

HYDRATION_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class HydrationResult:
    """Outcome of one hydration attempt.

    Attributes:
        loaded: True when both history queries succeeded.
        actions: Recent actions, newest first.
        agent_seeds: Per-agent aggregate rows for the trailing window.
        error: Failure description when ``loaded`` is False.
    """

    loaded: bool
    actions: list[AgentAction] = field(default_factory=list)
    agent_seeds: list[AgentSummaryRow] = field(default_factory=list)
    error: str | None = None


class HydrationLoader:
    """Loads seed data for the aggregator from the history store."""

    def __init__(
        self,
        store: IntelligenceHistoryStore,
        action_limit: int | None = None,
        agent_limit: int | None = None,
    ) -> None:
        self._store = store
        self._action_limit = action_limit or store.config.hydration_action_limit
        self._agent_limit = agent_limit or store.config.hydration_agent_limit

    async def load(self) -> HydrationResult:
        """Run the hydration queries. Never raises."""
        try:
            if not self._store.is_initialized:
                await self._store.initialize()
            actions = await self._store.fetch_recent_actions(self._action_limit)
            agent_seeds = await self._store.fetch_agent_summary(
                HYDRATION_WINDOW, self._agent_limit
            )
        except Exception as e:
            logger.warning(
                "Hydration from history failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return HydrationResult(loaded=False, error=str(e))

        logger.info(
            "Hydration data loaded",
            extra={"actions": len(actions), "agents": len(agent_seeds)},
        )
        return HydrationResult(loaded=True, actions=actions, agent_seeds=agent_seeds)


__all__ = ["HYDRATION_WINDOW", "HydrationLoader", "HydrationResult"]
