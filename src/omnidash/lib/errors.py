# SPDX-License-Identifier: MIT
# Copyright (c) 2025 OmniNode Team
"""ONEX-style error handling for omnidash.

Single source of truth for the error codes and exception classes raised
across omnidash modules.

Error kinds surfaced to callers:
    - IntelligenceTimeoutError: no response before the deadline. The outcome
      is unknown; the worker may still complete the request later.
    - IntelligenceRemoteError: the worker explicitly reported failure.
    - OnexError: everything else (configuration, lifecycle, bad input).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

class EnumCoreErrorCode(StrEnum):
    """Core error codes for omnidash operations."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"

    # Operation errors
    OPERATION_FAILED = "OPERATION_FAILED"
    INITIALIZATION_ERROR = "INITIALIZATION_ERROR"
    NOT_STARTED = "NOT_STARTED"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # Request/response errors
    TIMEOUT = "TIMEOUT"
    REMOTE_FAILURE = "REMOTE_FAILURE"

class OnexError(Exception):
    """Base exception class for omnidash operations.

    Attributes:
        code: Error code from EnumCoreErrorCode
        error_code: Alias for code
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: EnumCoreErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.error_code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        return f"OnexError(code={self.code}, message={self.message}, details={self.details})"


class IntelligenceTimeoutError(OnexError, TimeoutError):
    """A correlated request received no response before its deadline.

    Treat as "unknown outcome", not as failure.
    """

    def __init__(self, correlation_id: str, timeout_ms: int) -> None:
        super().__init__(
            code=EnumCoreErrorCode.TIMEOUT,
            message=(
                f"Intelligence request timed out after {timeout_ms}ms "
                f"(correlation_id: {correlation_id})"
            ),
            details={"correlation_id": correlation_id, "timeout_ms": timeout_ms},
        )
        self.correlation_id = correlation_id
        self.timeout_ms = timeout_ms


class IntelligenceRemoteError(OnexError):
    """The worker reported failure for a correlated request."""

    def __init__(
        self,
        correlation_id: str,
        remote_error_code: str | None,
        remote_error_message: str,
    ) -> None:
        super().__init__(
            code=EnumCoreErrorCode.REMOTE_FAILURE,
            message=f"{remote_error_code or 'UNKNOWN'}: {remote_error_message}",
            details={
                "correlation_id": correlation_id,
                "remote_error_code": remote_error_code,
            },
        )
        self.correlation_id = correlation_id
        self.remote_error_code = remote_error_code
        self.remote_error_message = remote_error_message


__all__ = [
    "EnumCoreErrorCode",
    "IntelligenceRemoteError",
    "IntelligenceTimeoutError",
    "OnexError",
]
