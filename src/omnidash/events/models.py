# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Canonical records for agent observability events.

Producers emit either snake_case or camelCase field names. These models are
the single internal representation: both spellings are accepted on input
(field name = snake_case, alias = camelCase) and records serialize to
camelCase for the dashboard via ``to_wire``.

All records are frozen so read accessors can hand them out without copying.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Annotated, Any
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel

# Timestamps arrive as ISO strings, epoch milliseconds, or naive datetimes
# from the database.
_EPOCH_MS_THRESHOLD = 10_000_000_000


def ensure_timezone_aware(value: object) -> object:
    """Coerce wire timestamp representations to an aware UTC datetime.

    Example:
        >>> ensure_timezone_aware("2025-01-15T12:00:00Z")
        datetime.datetime(2025, 1, 15, 12, 0, tzinfo=datetime.timezone.utc)
        >>> ensure_timezone_aware(1736942400000)
        datetime.datetime(2025, 1, 15, 12, 0, tzinfo=datetime.timezone.utc)

    Raises:
        ValueError: If a numeric timestamp is not finite or out of range.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        try:
            seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
            return datetime.fromtimestamp(seconds, UTC)
        except (OverflowError, OSError) as e:
            raise ValueError(f"timestamp out of range: {value!r}") from e
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    return value


def _none_to(default: Any) -> BeforeValidator:
    return BeforeValidator(lambda v: default if v is None else v)


TimezoneAwareDatetime = Annotated[datetime, BeforeValidator(ensure_timezone_aware)]
NonNullFloat = Annotated[float, _none_to(0.0)]
NonNullInt = Annotated[int, _none_to(0)]
OptionalId = Annotated[
    str | None, BeforeValidator(lambda v: None if v is None else str(v))
]
RecordId = Annotated[
    str, BeforeValidator(lambda v: _new_id() if v is None or v == "" else str(v))
]


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class _WireModel(BaseModel):
    """Shared configuration for records that travel to and from the bus."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _created_at_field() -> Any:
    return Field(
        default_factory=_now,
        validation_alias=AliasChoices("timestamp", "created_at", "createdAt"),
        serialization_alias="createdAt",
    )


# =============================================================================
# Event Records
# =============================================================================


class AgentAction(_WireModel):
    """A single tool call, decision, success or error reported by an agent."""

    id: RecordId = Field(default_factory=_new_id)
    correlation_id: OptionalId = None
    agent_name: str | None = None
    action_type: str | None = None
    action_name: str | None = None
    action_details: Any = None
    debug_mode: Annotated[bool, _none_to(False)] = False
    duration_ms: NonNullFloat = 0.0
    created_at: TimezoneAwareDatetime = _created_at_field()

    @property
    def is_outcome(self) -> bool:
        """True when the action reports an explicit success or error."""
        return self.action_type in ("success", "error")


class RoutingDecision(_WireModel):
    """The router's choice of agent for a user request."""

    id: RecordId = Field(default_factory=_new_id)
    correlation_id: OptionalId = None
    user_request: Annotated[str, _none_to("")] = ""
    selected_agent: str = Field(..., min_length=1)
    confidence_score: NonNullFloat = 0.0
    routing_strategy: Annotated[str, _none_to("")] = ""
    alternatives: Any = None
    reasoning: str | None = None
    routing_time_ms: NonNullFloat = 0.0
    created_at: TimezoneAwareDatetime = _created_at_field()


class TransformationEvent(_WireModel):
    """An agent handing its role over to another agent."""

    id: RecordId = Field(default_factory=_new_id)
    correlation_id: OptionalId = None
    source_agent: str | None = None
    target_agent: str | None = None
    transformation_reason: str | None = None
    transformation_duration_ms: NonNullFloat = 0.0
    success: Annotated[bool, _none_to(True)] = True
    confidence_score: NonNullFloat = 0.0
    created_at: TimezoneAwareDatetime = _created_at_field()


class PerformanceMetric(_WireModel):
    """Router timing sample for a single query."""

    id: RecordId = Field(default_factory=_new_id)
    correlation_id: OptionalId = None
    query_text: Annotated[str, _none_to("")] = ""
    routing_duration_ms: NonNullFloat = 0.0
    cache_hit: Annotated[bool, _none_to(False)] = False
    candidates_evaluated: NonNullInt = 0
    trigger_match_strategy: Annotated[str, _none_to("unknown")] = "unknown"
    created_at: TimezoneAwareDatetime = _created_at_field()


# =============================================================================
# Derived Views
# =============================================================================


class AgentMetricsView(_WireModel):
    """Read-side view of one agent's rolling statistics."""

    agent: str
    total_requests: int
    success_rate: float | None
    avg_routing_time: float
    avg_confidence: float
    last_seen: datetime


class AgentSummaryRow(_WireModel):
    """One row of the historical "aggregate by agent" query."""

    agent: Annotated[str, _none_to("unknown")] = "unknown"
    total_requests: NonNullInt = 0
    avg_routing_time: NonNullFloat = 0.0
    avg_confidence: NonNullFloat = 0.0


class PerformanceStatsView(_WireModel):
    """Running performance aggregate plus the derived cache hit rate."""

    total_queries: int = 0
    cache_hit_count: int = 0
    total_routing_duration: float = 0.0
    avg_routing_duration: float = 0.0
    cache_hit_rate: float = 0.0


class PerformanceUpdate(_WireModel):
    """Payload of a performanceUpdate notification."""

    metric: PerformanceMetric
    stats: PerformanceStatsView


def to_wire(payload: Any) -> Any:
    """Convert records (or containers of records) to camelCase JSON data."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", by_alias=True)
    if isinstance(payload, Mapping):
        return {key: to_wire(value) for key, value in payload.items()}
    if isinstance(payload, Sequence) and not isinstance(payload, str | bytes):
        return [to_wire(item) for item in payload]
    if isinstance(payload, datetime):
        return payload.isoformat()
    return payload


__all__ = [
    "AgentAction",
    "AgentMetricsView",
    "AgentSummaryRow",
    "PerformanceMetric",
    "PerformanceStatsView",
    "PerformanceUpdate",
    "RoutingDecision",
    "TimezoneAwareDatetime",
    "TransformationEvent",
    "ensure_timezone_aware",
    "to_wire",
]
