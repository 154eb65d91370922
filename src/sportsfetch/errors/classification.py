"""错误分类模块：将 HTTP 状态码和传输异常映射为 OperationOutcome。

Error classification for upstream attempts.

Pure functions turning a raw response or a transport exception into exactly
one OperationOutcome. Nothing downstream inspects exception types again.
"""

from __future__ import annotations

import contextlib
from enum import Enum
from typing import TYPE_CHECKING

from sportsfetch.errors.base import (
    PermanentUpstreamError,
    TransientUpstreamError,
    TransportError,
)
from sportsfetch.types.outcome import Failure, Success

if TYPE_CHECKING:
    from collections.abc import Collection

    from sportsfetch.types.outcome import OperationOutcome
    from sportsfetch.types.request import FetchResponse


class ErrorClass(str, Enum):
    """Standard error classification."""

    RATE_LIMITED = "rate_limited"
    """Throttled by the upstream; retryable with backoff."""

    TIMEOUT = "timeout"
    """Request timed out or gateway deadline exceeded."""

    SERVER_ERROR = "server_error"
    """Server-side failure (5xx)."""

    OVERLOADED = "overloaded"
    """Service temporarily unavailable."""

    NETWORK = "network"
    """Connection-level failure before a status was received."""

    NOT_FOUND = "not_found"
    """Requested resource does not exist."""

    INVALID_REQUEST = "invalid_request"
    """Malformed request or unsupported parameters."""

    AUTHENTICATION = "authentication"
    """Missing or invalid credentials."""

    PERMISSION_DENIED = "permission_denied"
    """Authenticated but not permitted."""

    MALFORMED_RESPONSE = "malformed_response"
    """Success status with an unusable body."""

    OTHER = "other"
    """Unknown classification."""


DEFAULT_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 502, 503, 504})

_DEFAULT_STATUS_MAPPING: dict[int, ErrorClass] = {
    400: ErrorClass.INVALID_REQUEST,
    401: ErrorClass.AUTHENTICATION,
    403: ErrorClass.PERMISSION_DENIED,
    404: ErrorClass.NOT_FOUND,
    408: ErrorClass.TIMEOUT,
    422: ErrorClass.INVALID_REQUEST,
    429: ErrorClass.RATE_LIMITED,
    500: ErrorClass.SERVER_ERROR,
    502: ErrorClass.SERVER_ERROR,
    503: ErrorClass.OVERLOADED,
    504: ErrorClass.TIMEOUT,
}


def classify_status(status_code: int) -> ErrorClass:
    """Classify an HTTP status into a standard error class.

    Args:
        status_code: HTTP status code

    Returns:
        ErrorClass representing the error type
    """
    if status_code in _DEFAULT_STATUS_MAPPING:
        return _DEFAULT_STATUS_MAPPING[status_code]

    if 400 <= status_code < 500:
        return ErrorClass.INVALID_REQUEST
    if 500 <= status_code < 600:
        return ErrorClass.SERVER_ERROR

    return ErrorClass.OTHER


def parse_retry_after(value: str | None) -> float | None:
    """Parse a numeric Retry-After header value in seconds."""
    if not value:
        return None
    with contextlib.suppress(ValueError):
        seconds = float(value)
        if seconds >= 0:
            return seconds
    return None


def classify_response(
    response: FetchResponse,
    retryable_status_codes: Collection[int] = DEFAULT_RETRYABLE_STATUS_CODES,
    *,
    reject_empty_body: bool = True,
) -> OperationOutcome[bytes]:
    """Classify a raw response into an OperationOutcome.

    Args:
        response: Raw transport response
        retryable_status_codes: Statuses worth another attempt
        reject_empty_body: Treat a 2xx with no body as malformed

    Returns:
        Success with the body bytes, or a classified Failure
    """
    if response.is_success:
        if reject_empty_body and not response.content:
            error = PermanentUpstreamError(
                f"Empty response body from {response.endpoint or 'upstream'}",
                error_class=ErrorClass.MALFORMED_RESPONSE,
                status_code=response.status_code,
                endpoint=response.endpoint,
            )
            return Failure(error=error, retryable=False)
        return Success(response.content)

    error_class = classify_status(response.status_code)
    message = f"HTTP {response.status_code} from {response.endpoint or 'upstream'}"

    if response.status_code in retryable_status_codes:
        retry_after = parse_retry_after(response.header("retry-after"))
        transient = TransientUpstreamError(
            message,
            error_class=error_class,
            status_code=response.status_code,
            endpoint=response.endpoint,
            retry_after=retry_after,
        )
        return Failure(error=transient, retryable=True, retry_after=retry_after)

    permanent = PermanentUpstreamError(
        message,
        error_class=error_class,
        status_code=response.status_code,
        endpoint=response.endpoint,
    )
    return Failure(error=permanent, retryable=False)


def classify_exception(
    exc: BaseException,
    *,
    endpoint: str | None = None,
    retry_on_timeout: bool = True,
) -> OperationOutcome[bytes]:
    """Classify a transport exception into a Failure.

    Only TransportError is owned by the classifier; anything else is
    re-raised unchanged.

    Args:
        exc: Exception raised by the transport
        endpoint: Endpoint being fetched
        retry_on_timeout: Whether timeouts are retryable

    Returns:
        Failure describing the network condition
    """
    if not isinstance(exc, TransportError):
        raise exc

    if exc.is_timeout:
        if retry_on_timeout:
            timeout_error = TransientUpstreamError(
                f"Request timed out: {exc.message}",
                error_class=ErrorClass.TIMEOUT,
                endpoint=endpoint,
            )
            timeout_error.__cause__ = exc
            return Failure(error=timeout_error, retryable=True)
        fatal = PermanentUpstreamError(
            f"Request timed out: {exc.message}",
            error_class=ErrorClass.TIMEOUT,
            endpoint=endpoint,
        )
        fatal.__cause__ = exc
        return Failure(error=fatal, retryable=False)

    network_error = TransientUpstreamError(
        f"Network error: {exc.message}",
        error_class=ErrorClass.NETWORK,
        endpoint=endpoint,
    )
    network_error.__cause__ = exc
    return Failure(error=network_error, retryable=True)
