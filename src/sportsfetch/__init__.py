"""面向限流体育数据 API 的弹性获取管线：限流、重试、熔断、缓存与批量编排。

sportsfetch: Resilient fetch pipeline for rate-limited sports data APIs.

Every upstream call is rate limited, retried with backoff, guarded by a
circuit breaker and cached by category; bulk work runs in bounded batches.
"""
from __future__ import annotations

from sportsfetch.batch import BatchResult, BulkOptions, BulkOrchestrator, BulkProgress
from sportsfetch.cancel import CancelReason, CancelToken
from sportsfetch.client import SportsDataClient, SportsDataClientBuilder
from sportsfetch.config import ClientSettings
from sportsfetch.errors import (
    CircuitOpenError,
    OperationCancelledError,
    RateLimitTimeout,
    SportsFetchError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from sportsfetch.types import FetchCategory, FetchRequest, FetchResponse

__version__ = "0.1.0"

__all__ = [
    # Batch
    "BatchResult",
    "BulkOptions",
    "BulkOrchestrator",
    "BulkProgress",
    # Cancellation
    "CancelReason",
    "CancelToken",
    # Errors
    "CircuitOpenError",
    # Config
    "ClientSettings",
    # Types
    "FetchCategory",
    "FetchRequest",
    "FetchResponse",
    "OperationCancelledError",
    "RateLimitTimeout",
    # Client
    "SportsDataClient",
    "SportsDataClientBuilder",
    "SportsFetchError",
    "TransportError",
    "UpstreamError",
    "ValidationError",
    # Version
    "__version__",
]
