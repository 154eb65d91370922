"""
Resilience layer - admission control, retry and circuit breaking.

This module provides:
- SlidingWindowRateLimiter: sliding window admission gate with a FIFO queue
- RetryPolicy: exponential backoff with jitter
- CircuitBreaker: Closed / Open / HalfOpen state machine
- ResilientExecutor: retry under a circuit breaker over classified outcomes
- PipelineSignals: read-only diagnostics snapshot
"""

from sportsfetch.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    CircuitStats,
)
from sportsfetch.resilience.executor import (
    ExecutionStats,
    ResilientConfig,
    ResilientExecutor,
)
from sportsfetch.resilience.rate_limiter import (
    RateLimiterConfig,
    RateLimitStatus,
    SlidingWindowRateLimiter,
)
from sportsfetch.resilience.retry import RetryConfig, RetryPolicy
from sportsfetch.resilience.signals import CircuitBreakerSnapshot, PipelineSignals

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerSnapshot",
    "CircuitState",
    "CircuitStats",
    # Executor
    "ExecutionStats",
    "ResilientConfig",
    "ResilientExecutor",
    # Rate limiter
    "RateLimitStatus",
    "RateLimiterConfig",
    "SlidingWindowRateLimiter",
    # Retry
    "RetryConfig",
    "RetryPolicy",
    # Signals
    "PipelineSignals",
]
