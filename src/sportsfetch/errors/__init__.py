"""错误体系：抓取管线的结构化错误类型与分类函数。

Error hierarchy for sportsfetch.

Every failure maps to exactly one class below before it is reported or retried.
"""

from sportsfetch.errors.base import (
    BatchItemError,
    CircuitOpenError,
    ErrorContext,
    OperationCancelledError,
    PermanentUpstreamError,
    RateLimitTimeout,
    SportsFetchError,
    TransientUpstreamError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from sportsfetch.errors.classification import (
    DEFAULT_RETRYABLE_STATUS_CODES,
    ErrorClass,
    classify_exception,
    classify_response,
    classify_status,
    parse_retry_after,
)

__all__ = [
    # Base errors
    "BatchItemError",
    "CircuitOpenError",
    "ErrorContext",
    "OperationCancelledError",
    "PermanentUpstreamError",
    "RateLimitTimeout",
    "SportsFetchError",
    "TransientUpstreamError",
    "TransportError",
    "UpstreamError",
    "ValidationError",
    # Classification
    "DEFAULT_RETRYABLE_STATUS_CODES",
    "ErrorClass",
    "classify_exception",
    "classify_response",
    "classify_status",
    "parse_retry_after",
]
