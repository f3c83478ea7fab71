"""
Intelligence Event Client - correlated request/response over Kafka

Turns one-way publish/subscribe messaging into a synchronous-looking call
for on-demand intelligence operations (pattern discovery, code analysis).

Key Features:
- Request-response pattern with correlation tracking
- Async producer/consumer using aiokafka
- Per-request deadline timers with idempotent cleanup
- Many outstanding requests at once, no head-of-line blocking
- Health check for the service status endpoint

Event Flow:
1. Client publishes CODE_ANALYSIS_REQUESTED keyed by the correlation id
2. Intelligence worker processes the request
3. Client receives CODE_ANALYSIS_COMPLETED or CODE_ANALYSIS_FAILED
4. No response before the deadline: IntelligenceTimeoutError (unknown
   outcome, the worker may still finish)

Responses for correlation ids this instance does not own are dropped
silently; several dashboard instances share the response topics.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer
from aiokafka.errors import KafkaError

from omnidash.clients.config import ConfigIntelligenceClient
from omnidash.events.normalization import decode_value
from omnidash.lib.errors import (
    EnumCoreErrorCode,
    IntelligenceRemoteError,
    IntelligenceTimeoutError,
    OnexError,
)

logger = logging.getLogger(__name__)

EVENT_TYPE_REQUESTED = "CODE_ANALYSIS_REQUESTED"
EVENT_TYPE_COMPLETED = "CODE_ANALYSIS_COMPLETED"
EVENT_TYPE_FAILED = "CODE_ANALYSIS_FAILED"


@dataclass
class PendingRequest:
    """An outstanding correlated request.

    Owned by the client from publish until match, timeout or stop.
    """

    correlation_id: str
    future: asyncio.Future[Any]
    deadline: float
    timer: asyncio.TimerHandle | None = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class IntelligenceEventClient:
    """
    Kafka client for correlated intelligence requests.

    Usage:
        async with IntelligenceEventClient() as client:
            patterns = await client.request_pattern_discovery("src/**/*.py")

    Or with explicit lifecycle:
        client = IntelligenceEventClient(ConfigIntelligenceClient())
        await client.start()
        try:
            result = await client.request_pattern_discovery(
                source_path="node_*_effect.py",
                timeout_ms=5000,
            )
        except IntelligenceTimeoutError:
            result = None  # unknown outcome, fall back
        finally:
            await client.stop()
    """

    def __init__(self, config: ConfigIntelligenceClient | None = None) -> None:
        self._config = config or ConfigIntelligenceClient()
        self.consumer_group_id = (
            f"{self._config.consumer_group_prefix}-{uuid4().hex[:8]}"
        )

        self._producer: AIOKafkaProducer | None = None
        self._consumer: AIOKafkaConsumer | None = None
        self._consume_task: asyncio.Task[None] | None = None
        self._started = False
        self._pending: dict[str, PendingRequest] = {}
        self._consumer_ready = asyncio.Event()
        self.transport_errors = 0

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def pending_count(self) -> int:
        """Number of requests currently awaiting a response."""
        return len(self._pending)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """
        Connect the producer and the response consumer.

        Waits until the response consumer has partition assignments and its
        polling task is running, so a response can never be published
        before this instance is listening for it.

        Raises:
            KafkaError: If Kafka connection or partition assignment fails
        """
        if self._started:
            logger.debug("Intelligence event client already started")
            return

        try:
            logger.info(
                "Starting intelligence event client",
                extra={
                    "bootstrap_servers": self._config.bootstrap_servers,
                    "consumer_group_id": self.consumer_group_id,
                },
            )

            self._producer = AIOKafkaProducer(
                bootstrap_servers=self._config.bootstrap_servers,
                client_id=self._config.client_id,
                linger_ms=20,
                acks="all",
                request_timeout_ms=30000,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            )
            await self._producer.start()

            # Values are decoded per message so one malformed response
            # cannot break the iterator.
            self._consumer = AIOKafkaConsumer(
                self._config.completed_topic,
                self._config.failed_topic,
                bootstrap_servers=self._config.bootstrap_servers,
                client_id=self._config.client_id,
                group_id=self.consumer_group_id,
                enable_auto_commit=True,
                auto_offset_reset="earliest",
            )
            await self._consumer.start()

            await self._wait_for_assignment()

            self._consume_task = asyncio.create_task(self._consume_responses())
            await asyncio.wait_for(self._consumer_ready.wait(), timeout=5.0)

            self._started = True
            logger.info("Intelligence event client started successfully")

        except Exception as e:
            logger.error(
                "Failed to start intelligence event client",
                extra={"error": str(e)},
            )
            await self._shutdown()
            raise KafkaError(f"Failed to start Kafka client: {e}") from e

    async def stop(self) -> None:
        """
        Disconnect the response consumer, then the producer.

        Every still-pending request is failed so no caller waits forever.
        """
        if not self._started:
            return

        logger.info("Stopping intelligence event client")
        await self._shutdown()
        logger.info("Intelligence event client stopped successfully")

    async def __aenter__(self) -> IntelligenceEventClient:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.stop()

    async def _shutdown(self) -> None:
        if self._consume_task is not None:
            self._consume_task.cancel()
            try:
                await self._consume_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(
                    "Response consumer task ended with error", extra={"error": str(e)}
                )
            self._consume_task = None

        try:
            if self._consumer is not None:
                await self._consumer.stop()
            if self._producer is not None:
                await self._producer.stop()
        except Exception as e:
            logger.error(
                "Error stopping intelligence event client", extra={"error": str(e)}
            )
        finally:
            self._consumer = None
            self._producer = None

        for pending in list(self._pending.values()):
            pending.cancel_timer()
            if not pending.future.done():
                pending.future.set_exception(
                    OnexError(
                        code=EnumCoreErrorCode.OPERATION_FAILED,
                        message="Client stopped while request pending",
                        details={"correlation_id": pending.correlation_id},
                    )
                )
        self._pending.clear()

        self._consumer_ready.clear()
        self._started = False

    async def _wait_for_assignment(self) -> None:
        if self._consumer is None:
            raise RuntimeError("Consumer not initialized")

        loop = asyncio.get_running_loop()
        max_wait = self._config.partition_assignment_timeout_seconds
        started_at = loop.time()
        while not self._consumer.assignment():
            await asyncio.sleep(0.1)
            if loop.time() - started_at > max_wait:
                raise TimeoutError(
                    f"Consumer failed to get partition assignment after {max_wait}s "
                    f"(topics: {self._config.completed_topic}, "
                    f"{self._config.failed_topic}; group: {self.consumer_group_id})"
                )

        logger.info(
            "Response consumer ready",
            extra={"partitions": len(self._consumer.assignment())},
        )

    async def health_check(self) -> bool:
        """
        Check Kafka connection health.

        Returns:
            True if started and the producer is connected
        """
        return self._started and self._producer is not None

    # =========================================================================
    # Requests
    # =========================================================================

    async def request(
        self,
        request_kind: str,
        payload: Mapping[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> Any:
        """
        Publish a correlated request and wait for its response.

        Args:
            request_kind: Logical request type (e.g. "code_analysis")
            payload: Request fields. ``correlation_id``/``correlationId`` is
                used as the correlation id when present; any key overrides
                the envelope payload defaults.
            timeout_ms: Deadline in milliseconds (default: configured)

        Returns:
            The unwrapped payload of the completed response

        Raises:
            IntelligenceTimeoutError: No response before the deadline
            IntelligenceRemoteError: The worker reported failure
            OnexError: Client not started, or correlation id already pending
            KafkaError: Publishing failed
        """
        if not self._started or self._producer is None:
            raise OnexError(
                code=EnumCoreErrorCode.NOT_STARTED,
                message="Intelligence event client not started. Call start() first.",
            )

        fields = dict(payload or {})
        correlation_id = self._resolve_correlation_id(fields)
        if correlation_id in self._pending:
            raise OnexError(
                code=EnumCoreErrorCode.INVALID_INPUT,
                message=f"Correlation id already has an outstanding request: {correlation_id}",
                details={"correlation_id": correlation_id},
            )

        timeout = timeout_ms or self._config.request_timeout_ms
        envelope = self._create_request_envelope(request_kind, correlation_id, fields)

        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            correlation_id=correlation_id,
            future=loop.create_future(),
            deadline=loop.time() + timeout / 1000.0,
        )
        pending.timer = loop.call_later(
            timeout / 1000.0, self._expire, correlation_id, timeout
        )
        self._pending[correlation_id] = pending

        try:
            logger.debug(
                "Publishing intelligence request",
                extra={
                    "correlation_id": correlation_id,
                    "request_kind": request_kind,
                    "timeout_ms": timeout,
                },
            )
            await self._producer.send_and_wait(
                self._config.request_topic,
                value=envelope,
                key=correlation_id.encode("utf-8"),
            )
            return await pending.future
        finally:
            self._discard(pending)

    async def request_pattern_discovery(
        self,
        source_path: str,
        language: str = "python",
        project_id: str | None = None,
        operation_type: str = "PATTERN_EXTRACTION",
        timeout_ms: int | None = None,
    ) -> Any:
        """
        Request pattern discovery for a path or glob.

        Example:
            result = await client.request_pattern_discovery(
                source_path="node_*_effect.py",
                language="python",
            )
        """
        fields: dict[str, Any] = {
            "source_path": source_path,
            "language": language,
            "operation_type": operation_type,
        }
        if project_id:
            fields["project_id"] = project_id
        return await self.request("code_analysis", fields, timeout_ms)

    def _resolve_correlation_id(self, fields: Mapping[str, Any]) -> str:
        supplied = fields.get("correlation_id") or fields.get("correlationId")
        return str(supplied or uuid4()).upper()

    def _create_request_envelope(
        self,
        request_kind: str,
        correlation_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Build the request envelope.

        Known fields are read in snake_case or camelCase; every caller key is
        then copied over the defaults.
        """
        body: dict[str, Any] = {
            "source_path": fields.get("source_path") or fields.get("sourcePath") or "",
            "content": fields.get("content"),
            "language": fields.get("language") or "python",
            "operation_type": (
                fields.get("operation_type")
                or fields.get("operationType")
                or "PATTERN_EXTRACTION"
            ),
            "options": fields.get("options") or {},
            "project_id": (
                fields.get("project_id") or fields.get("projectId") or "omnidash"
            ),
            "user_id": fields.get("user_id") or fields.get("userId") or "system",
        }
        body.update({k: v for k, v in fields.items() if v is not None})
        body["correlation_id"] = correlation_id
        body.pop("correlationId", None)

        return {
            "event_id": str(uuid4()),
            "event_type": EVENT_TYPE_REQUESTED,
            "request_type": request_kind,
            "correlation_id": correlation_id,
            "timestamp": datetime.now(UTC).isoformat(),
            "service": self._config.service_name,
            "payload": body,
        }

    def _expire(self, correlation_id: str, timeout_ms: int) -> None:
        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            return
        pending.timer = None
        if not pending.future.done():
            logger.warning(
                "Intelligence request timed out",
                extra={"correlation_id": correlation_id, "timeout_ms": timeout_ms},
            )
            pending.future.set_exception(
                IntelligenceTimeoutError(correlation_id, timeout_ms)
            )

    def _discard(self, pending: PendingRequest) -> None:
        pending.cancel_timer()
        if self._pending.get(pending.correlation_id) is pending:
            del self._pending[pending.correlation_id]
        if not pending.future.done():
            pending.future.cancel()

    # =========================================================================
    # Responses
    # =========================================================================

    async def _consume_responses(self) -> None:
        """
        Background task resolving pending requests from response topics.

        Runs for the lifetime of the client. Per-message errors are logged
        and skipped; Kafka errors back off and resume.
        """
        logger.info(
            "Starting response consumer task",
            extra={
                "topics": [self._config.completed_topic, self._config.failed_topic]
            },
        )
        self._consumer_ready.set()

        try:
            while self._consumer is not None:
                try:
                    async for msg in self._consumer:
                        try:
                            self._handle_response(msg.topic, msg.value, msg.key)
                        except Exception as e:
                            logger.error(
                                "Error processing response",
                                extra={"topic": msg.topic, "error": str(e)},
                                exc_info=True,
                            )
                    else:
                        break
                except KafkaError as e:
                    self.transport_errors += 1
                    logger.exception(
                        "Kafka error in response consumer, backing off",
                        extra={
                            "retry_backoff_seconds": self._config.retry_backoff_seconds,
                            "error": str(e),
                        },
                    )
                    await asyncio.sleep(self._config.retry_backoff_seconds)
        except asyncio.CancelledError:
            logger.debug("Response consumer task cancelled")
            raise
        finally:
            logger.debug("Response consumer task stopped")

    def _handle_response(
        self,
        topic: str,
        value: bytes | str | dict[str, Any] | None,
        key: bytes | str | None = None,
    ) -> bool:
        """
        Resolve the pending request a response belongs to.

        Returns:
            True if a pending request was resolved or rejected
        """
        try:
            event = decode_value(value)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(
                "Undecodable intelligence response", extra={"topic": topic, "error": str(e)}
            )
            return False

        correlation_id = self._extract_correlation_id(event, key)
        if not correlation_id:
            logger.debug("Response missing correlation_id", extra={"topic": topic})
            return False

        event_type = event.get("event_type")
        if topic == self._config.completed_topic or event_type == EVENT_TYPE_COMPLETED:
            completed = True
        elif topic == self._config.failed_topic or event_type == EVENT_TYPE_FAILED:
            completed = False
        else:
            logger.warning(
                "Unknown response type",
                extra={"topic": topic, "event_type": event_type},
            )
            return False

        pending = self._pending.pop(correlation_id, None)
        if pending is None:
            logger.debug(
                "No pending request for correlation_id",
                extra={"correlation_id": correlation_id},
            )
            return False

        pending.cancel_timer()
        if pending.future.done():
            return False

        body = event.get("payload") or event
        if completed:
            pending.future.set_result(body)
            logger.debug(
                "Completed request", extra={"correlation_id": correlation_id}
            )
        else:
            error_code = body.get("error_code") if isinstance(body, dict) else None
            error_message = (
                (body.get("error_message") or body.get("error"))
                if isinstance(body, dict)
                else None
            ) or "Intelligence request failed"
            pending.future.set_exception(
                IntelligenceRemoteError(correlation_id, error_code, str(error_message))
            )
            logger.warning(
                "Failed request",
                extra={"correlation_id": correlation_id, "error_code": error_code},
            )
        return True

    @staticmethod
    def _extract_correlation_id(
        event: Mapping[str, Any], key: bytes | str | None
    ) -> str | None:
        nested = event.get("payload")
        candidate = (
            event.get("correlation_id")
            or event.get("correlationId")
            or (nested.get("correlation_id") if isinstance(nested, dict) else None)
        )
        if not candidate and key:
            candidate = key.decode("utf-8") if isinstance(key, bytes) else key
        return str(candidate).upper() if candidate else None


__all__ = [
    "IntelligenceEventClient",
    "PendingRequest",
]
