# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Message-boundary normalization for the agent observability topics.

Every inbound bus message passes through ``normalize_event`` exactly once.
The result is either a ``ParsedEvent`` carrying one canonical record, or a
``SkippedMessage`` describing why the message was dropped. Parsing never
raises, so a malformed message cannot terminate the subscription loop.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from omnidash.events.models import (
    AgentAction,
    PerformanceMetric,
    RoutingDecision,
    TransformationEvent,
)
from omnidash.events.topics import TopicBase

logger = logging.getLogger(__name__)

EventRecord = AgentAction | RoutingDecision | TransformationEvent | PerformanceMetric

_RECORD_TYPES: dict[str, type[BaseModel]] = {
    TopicBase.ROUTING_DECISIONS: RoutingDecision,
    TopicBase.AGENT_ACTIONS: AgentAction,
    TopicBase.TRANSFORMATIONS: TransformationEvent,
    TopicBase.PERFORMANCE_METRICS: PerformanceMetric,
}

_TIMESTAMP_KEYS = ("timestamp", "created_at", "createdAt")


@dataclass(frozen=True)
class ParsedEvent:
    """A successfully normalized message.

    Attributes:
        topic: Topic the message arrived on.
        record: Canonical record for the message.
        idempotency_key: ``"{topic}:{id}"`` when the producer supplied an
            explicit event id, otherwise None (never deduplicated).
    """

    topic: str
    record: EventRecord
    idempotency_key: str | None = None


@dataclass(frozen=True)
class SkippedMessage:
    """A message that was dropped at the boundary."""

    topic: str
    reason: str
    error: str | None = None


ParseResult = ParsedEvent | SkippedMessage


def decode_value(value: bytes | str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode a raw message value into a JSON object.

    Raises:
        ValueError: If the value is empty, not valid JSON, nested too deeply,
            or not an object.
    """
    if value is None:
        raise ValueError("message has no value")
    if isinstance(value, dict):
        return value
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if not value.strip():
        raise ValueError("message value is empty")
    try:
        decoded = json.loads(value)
    except RecursionError as e:
        raise ValueError("message value is nested too deeply") from e
    if not isinstance(decoded, dict):
        raise ValueError(f"expected JSON object, got {type(decoded).__name__}")
    return decoded


def normalize_event(
    topic: str,
    value: bytes | str | dict[str, Any] | None,
    received_at: datetime | None = None,
) -> ParseResult:
    """Normalize one bus message into a canonical record.

    Args:
        topic: Topic the message arrived on.
        value: Raw message value (bytes from the bus, or an already
            decoded object).
        received_at: Fallback timestamp for payloads that carry none.

    Returns:
        ParsedEvent on success, SkippedMessage otherwise.
    """
    record_type = _RECORD_TYPES.get(topic)
    if record_type is None:
        return SkippedMessage(topic=topic, reason="unknown_topic")

    try:
        payload = decode_value(value)
    except (ValueError, UnicodeDecodeError, RecursionError) as e:
        return SkippedMessage(topic=topic, reason="malformed_payload", error=str(e))

    if not any(payload.get(key) for key in _TIMESTAMP_KEYS):
        payload = {**payload, "timestamp": received_at or datetime.now(UTC)}

    try:
        record = record_type.model_validate(payload)
    except (ValidationError, ValueError, RecursionError) as e:
        return SkippedMessage(topic=topic, reason="validation_failed", error=str(e))

    explicit_id = payload.get("id")
    idempotency_key = f"{topic}:{explicit_id}" if explicit_id else None

    return ParsedEvent(
        topic=topic,
        record=record,  # type: ignore[arg-type]
        idempotency_key=idempotency_key,
    )


__all__ = [
    "EventRecord",
    "ParseResult",
    "ParsedEvent",
    "SkippedMessage",
    "decode_value",
    "normalize_event",
]
