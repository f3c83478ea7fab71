# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""Enums for the intelligence aggregator read side."""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum


class EnumTimeWindow(StrEnum):
    """Trailing windows accepted by the per-agent action timeline.

    Example:
        >>> EnumTimeWindow.parse("24h")
        <EnumTimeWindow.LAST_DAY: '24h'>
        >>> EnumTimeWindow.parse("bogus")
        <EnumTimeWindow.LAST_HOUR: '1h'>
    """

    LAST_HOUR = "1h"
    LAST_DAY = "24h"
    LAST_WEEK = "7d"

    @property
    def delta(self) -> timedelta:
        return _WINDOW_DELTAS[self]

    @classmethod
    def parse(cls, value: str | None) -> EnumTimeWindow:
        """Parse a window string, defaulting to the last hour."""
        try:
            return cls(value) if value else cls.LAST_HOUR
        except ValueError:
            return cls.LAST_HOUR


_WINDOW_DELTAS: dict[EnumTimeWindow, timedelta] = {
    EnumTimeWindow.LAST_HOUR: timedelta(hours=1),
    EnumTimeWindow.LAST_DAY: timedelta(hours=24),
    EnumTimeWindow.LAST_WEEK: timedelta(days=7),
}


class EnumHealthStatus(StrEnum):
    """Coarse health of a running component."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


__all__ = ["EnumHealthStatus", "EnumTimeWindow"]
