"""错误基类：为抓取管线提供分层错误体系和结构化错误上下文。

Base error classes for sportsfetch.

Provides a layered error hierarchy:
- SportsFetchError: Base class for all library errors
- RateLimitTimeout: Admission queue deadline elapsed
- OperationCancelledError: External abort through a cancel token
- CircuitOpenError: Call rejected by an open circuit
- UpstreamError: Classified upstream failure (transient or permanent)
- BatchItemError: Single work item failure inside a bulk run
- TransportError: Network-level failure before a status was received
- ValidationError: Invalid configuration or options
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sportsfetch.errors.classification import ErrorClass


@dataclass
class ErrorContext:
    """Structured error context for diagnostics."""

    operation: str | None = None
    """Logical operation name (e.g., 'GetSeason')"""

    endpoint: str | None = None
    """Upstream endpoint path"""

    category: str | None = None
    """Fetch category tag"""

    status_code: int | None = None
    """HTTP status code, when one was received"""

    attempt: int | None = None
    """Attempt number that produced the error"""

    source: str | None = None
    """Error source (e.g., 'rate_limiter', 'transport', 'upstream')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.endpoint:
            parts.append(f"endpoint={self.endpoint}")
        if self.attempt:
            parts.append(f"attempt={self.attempt}")
        return " ".join(parts)


class SportsFetchError(Exception):
    """Base class for all sportsfetch errors.

    Attributes:
        message: Human-readable error message
        context: Structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message


class RateLimitTimeout(SportsFetchError):
    """Raised when a queued acquire outlives its deadline.

    This is a policy-driven deadline, not an upstream failure: it is never
    retried internally and never counted by the circuit breaker.
    """

    def __init__(
        self,
        message: str,
        *,
        waited: float,
        queue_timeout: float,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="rate_limiter")
        ctx.details["waited"] = waited
        ctx.details["queue_timeout"] = queue_timeout
        super().__init__(message, ctx)
        self.waited = waited
        self.queue_timeout = queue_timeout


class OperationCancelledError(SportsFetchError):
    """Raised when a cancel token aborts a suspended operation."""

    def __init__(
        self,
        message: str = "Operation cancelled",
        *,
        reason: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="cancellation")
        if reason:
            ctx.details["reason"] = reason
        super().__init__(message, ctx)
        self.reason = reason


class CircuitOpenError(SportsFetchError):
    """Raised when the circuit breaker rejects a call.

    The wrapped operation was never invoked.
    """

    def __init__(
        self,
        message: str,
        *,
        time_until_retry: float | None = None,
        circuit_name: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="circuit_breaker")
        if time_until_retry is not None:
            ctx.details["time_until_retry"] = time_until_retry
        if circuit_name:
            ctx.details["circuit"] = circuit_name
        super().__init__(message, ctx)
        self.time_until_retry = time_until_retry
        self.circuit_name = circuit_name


class UpstreamError(SportsFetchError):
    """Classified failure from the upstream data source.

    Attributes:
        status_code: HTTP status code (None for network failures)
        error_class: Standardized error classification
        retryable: Whether the retry loop may try again
        retry_after: Server-suggested retry delay in seconds
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        error_class: ErrorClass,
        status_code: int | None = None,
        endpoint: str | None = None,
        retry_after: float | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="upstream")
        ctx.status_code = status_code
        if endpoint and not ctx.endpoint:
            ctx.endpoint = endpoint
        ctx.details["error_class"] = error_class.value
        ctx.details["retryable"] = self.retryable
        super().__init__(message, ctx)
        self.status_code = status_code
        self.error_class = error_class
        self.endpoint = endpoint
        self.retry_after = retry_after


class TransientUpstreamError(UpstreamError):
    """Retryable upstream failure (throttling, gateway errors, timeouts)."""

    retryable = True


class PermanentUpstreamError(UpstreamError):
    """Non-retryable upstream failure (client errors, malformed responses)."""

    retryable = False


class BatchItemError(SportsFetchError):
    """A single work item's failure inside a bulk run."""

    def __init__(
        self,
        message: str,
        *,
        index: int,
        item: Any,
        cause: BaseException,
    ) -> None:
        ctx = ErrorContext(source="batch")
        ctx.details["index"] = index
        ctx.details["error_type"] = type(cause).__name__
        super().__init__(message, ctx)
        self.index = index
        self.item = item
        self.cause = cause
        self.__cause__ = cause


class TransportError(SportsFetchError):
    """Error during HTTP transport.

    Raised when:
    - Network connection failure
    - Timeout
    - SSL/TLS errors
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        url: str | None = None,
        is_timeout: bool = False,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="transport")
        if url:
            ctx.details["url"] = url
        ctx.details["is_timeout"] = is_timeout
        super().__init__(message, ctx)
        self.url = url
        self.is_timeout = is_timeout
        self.__cause__ = cause


class ValidationError(SportsFetchError):
    """Validation error for settings and options.

    Raised when:
    - Settings file cannot be parsed
    - A setting is out of range
    - Bulk options are inconsistent
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        actual: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.details["field"] = field
        if actual is not None:
            ctx.details["actual"] = actual
        super().__init__(message, ctx)
        self.field = field
        self.actual = actual
