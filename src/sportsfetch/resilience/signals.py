"""
Pipeline signals and snapshots.

Read-only views of limiter, breaker and cache state for a diagnostics
surface. Building a snapshot never mutates the components it describes.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sportsfetch.resilience.rate_limiter import RateLimitStatus


@dataclass(frozen=True)
class CircuitBreakerSnapshot:
    """Snapshot of circuit breaker state.

    Attributes:
        name: Circuit name
        state: Current state (closed, open, half_open)
        failure_count: Consecutive failures counted while closed
        failure_threshold: Threshold for opening
        time_until_retry: Seconds until a trial call is admitted (open only)
        rejected_requests: Calls rejected since creation
    """

    name: str
    state: str
    failure_count: int
    failure_threshold: int
    time_until_retry: float | None = None
    rejected_requests: int = 0

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    @property
    def is_half_open(self) -> bool:
        return self.state == "half_open"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "state": self.state,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "time_until_retry": self.time_until_retry,
            "rejected_requests": self.rejected_requests,
            "is_open": self.is_open,
        }


@dataclass
class PipelineSignals:
    """Unified snapshot of the fetch pipeline.

    Attributes:
        rate_limiter: Rate limiter status
        circuit_breaker: Circuit breaker state
        cache: Cache hit/miss counters
        timestamp: Snapshot timestamp
    """

    rate_limiter: RateLimitStatus | None = None
    circuit_breaker: CircuitBreakerSnapshot | None = None
    cache: dict[str, Any] | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def is_healthy(self) -> bool:
        """True unless the circuit is open or the limiter has no free slot."""
        if self.circuit_breaker and self.circuit_breaker.is_open:
            return False
        return not (self.rate_limiter and self.rate_limiter.is_limited)

    @property
    def health_score(self) -> float:
        """Calculate a health score (0.0 to 1.0). Higher is better."""
        scores: list[float] = []

        if self.circuit_breaker:
            if self.circuit_breaker.is_closed:
                scores.append(1.0)
            elif self.circuit_breaker.is_half_open:
                scores.append(0.5)
            else:
                scores.append(0.0)

        if self.rate_limiter and self.rate_limiter.capacity > 0:
            scores.append(self.rate_limiter.remaining / self.rate_limiter.capacity)

        if not scores:
            return 1.0
        return sum(scores) / len(scores)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "rate_limiter": asdict(self.rate_limiter) if self.rate_limiter else None,
            "circuit_breaker": (
                self.circuit_breaker.to_dict() if self.circuit_breaker else None
            ),
            "cache": self.cache,
            "timestamp": self.timestamp,
            "is_healthy": self.is_healthy,
            "health_score": self.health_score,
        }
