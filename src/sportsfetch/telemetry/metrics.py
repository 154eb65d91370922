"""
Metrics collection for sportsfetch.

Provides request latency tracking, cache hit/miss counters, resilience
counters and bulk operation throughput.
"""

from __future__ import annotations

import statistics
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MetricLabels:
    """Labels for a metric.

    Attributes:
        operation: Logical operation name
        category: Fetch category tag
        endpoint: Upstream endpoint
        status: Request status (success, error, etc.)
        error_class: Error classification
    """

    operation: str | None = None
    category: str | None = None
    endpoint: str | None = None
    status: str | None = None
    error_class: str | None = None

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {k: v for k, v in vars(self).items() if v is not None}

    def to_key(self) -> str:
        """Convert to string key for aggregation."""
        parts = [f"{k}={v}" for k, v in sorted(self.to_dict().items())]
        return ",".join(parts) if parts else "_default_"


@dataclass
class BulkOperationMetrics:
    """Aggregated numbers for one bulk operation type."""

    runs: int = 0
    items_processed: int = 0
    errors: int = 0
    total_duration: float = 0.0

    @property
    def items_per_second(self) -> float:
        if self.total_duration <= 0:
            return 0.0
        return self.items_processed / self.total_duration

    @property
    def error_rate(self) -> float:
        if self.items_processed == 0:
            return 0.0
        return self.errors / self.items_processed


@dataclass
class MetricSnapshot:
    """Snapshot of current metrics.

    Attributes:
        total_requests: Upstream attempts made
        successful_requests: Attempts classified as success
        failed_requests: Attempts classified as failure
        latency_samples: Latency samples (seconds) for percentiles
        retry_count: Total retries scheduled
        rate_limit_waits: Total seconds spent queued at the rate limiter
        rate_limit_timeouts: Acquires that hit their queue deadline
        circuit_breaker_opens: Circuit breaker open transitions
        cache_hits: Cache hits
        cache_misses: Cache misses
        bulk: Bulk operation metrics per operation type
    """

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    latency_samples: list[float] = field(default_factory=list)
    retry_count: int = 0
    rate_limit_waits: float = 0.0
    rate_limit_timeouts: int = 0
    circuit_breaker_opens: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    bulk: dict[str, BulkOperationMetrics] = field(default_factory=dict)

    @property
    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.failed_requests / self.total_requests

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    @property
    def avg_latency_ms(self) -> float:
        if not self.latency_samples:
            return 0.0
        return statistics.mean(self.latency_samples) * 1000

    @property
    def max_latency_ms(self) -> float:
        if not self.latency_samples:
            return 0.0
        return max(self.latency_samples) * 1000

    @property
    def latency_p50_ms(self) -> float:
        if not self.latency_samples:
            return 0.0
        return statistics.median(self.latency_samples) * 1000

    @property
    def latency_p90_ms(self) -> float:
        if len(self.latency_samples) < 2:
            return self.max_latency_ms
        return statistics.quantiles(self.latency_samples, n=10)[-1] * 1000

    @property
    def latency_p99_ms(self) -> float:
        if len(self.latency_samples) < 2:
            return self.max_latency_ms
        return statistics.quantiles(self.latency_samples, n=100)[-1] * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "error_rate": self.error_rate,
            "avg_latency_ms": self.avg_latency_ms,
            "latency_p90_ms": self.latency_p90_ms,
            "retry_count": self.retry_count,
            "rate_limit_waits": self.rate_limit_waits,
            "rate_limit_timeouts": self.rate_limit_timeouts,
            "circuit_breaker_opens": self.circuit_breaker_opens,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": self.cache_hit_rate,
            "bulk": {
                name: {
                    "runs": m.runs,
                    "items_processed": m.items_processed,
                    "errors": m.errors,
                    "items_per_second": m.items_per_second,
                }
                for name, m in self.bulk.items()
            },
        }


class MetricsCollector:
    """Collects and aggregates metrics.

    Thread-safe; every method takes the internal lock briefly and never
    awaits while holding it.

    Example:
        >>> collector = MetricsCollector()
        >>> collector.record_request(
        ...     labels=MetricLabels(endpoint="/nfl/scoreboard", category="live"),
        ...     latency=0.12,
        ...     status="success",
        ... )
        >>> collector.get_snapshot().total_requests
        1
    """

    max_samples = 1000

    def __init__(self) -> None:
        self._lock = threading.Lock()

        self._request_count: dict[str, int] = defaultdict(int)
        self._success_count: dict[str, int] = defaultdict(int)
        self._error_count: dict[str, int] = defaultdict(int)
        self._retry_count: dict[str, int] = defaultdict(int)
        self._circuit_opens: dict[str, int] = defaultdict(int)
        self._cache_hits: dict[str, int] = defaultdict(int)
        self._cache_misses: dict[str, int] = defaultdict(int)

        self._latency_samples: dict[str, list[float]] = defaultdict(list)
        self._rate_limit_wait: float = 0.0
        self._rate_limit_timeouts: int = 0

        self._bulk: dict[str, BulkOperationMetrics] = {}

    def record_request(
        self,
        labels: MetricLabels,
        latency: float,
        status: str = "success",
    ) -> None:
        """Record one upstream attempt.

        Args:
            labels: Metric labels
            latency: Attempt latency in seconds
            status: "success" or an error status
        """
        key = labels.to_key()

        with self._lock:
            self._request_count[key] += 1
            if status == "success":
                self._success_count[key] += 1
            else:
                self._error_count[key] += 1

            samples = self._latency_samples[key]
            samples.append(latency)
            if len(samples) > self.max_samples:
                del samples[: len(samples) - self.max_samples]

    def record_retry(self, labels: MetricLabels, attempt: int) -> None:
        """Record a scheduled retry."""
        with self._lock:
            self._retry_count[labels.to_key()] += 1

    def record_rate_limit_wait(self, wait_time: float) -> None:
        """Record time spent queued at the rate limiter (seconds)."""
        with self._lock:
            self._rate_limit_wait += wait_time

    def record_rate_limit_timeout(self) -> None:
        with self._lock:
            self._rate_limit_timeouts += 1

    def record_circuit_open(self, name: str) -> None:
        """Record a circuit breaker opening."""
        with self._lock:
            self._circuit_opens[name] += 1

    def record_cache_operation(self, operation: str, hit: bool) -> None:
        """Record a cache lookup for an operation."""
        with self._lock:
            if hit:
                self._cache_hits[operation] += 1
            else:
                self._cache_misses[operation] += 1

    def record_bulk_operation(
        self,
        operation_type: str,
        items_processed: int,
        duration: float,
        error_count: int,
    ) -> None:
        """Record the outcome of a bulk run.

        Args:
            operation_type: Bulk operation type
            items_processed: Items attempted
            duration: Wall-clock duration in seconds
            error_count: Items that failed
        """
        with self._lock:
            metrics = self._bulk.setdefault(operation_type, BulkOperationMetrics())
            metrics.runs += 1
            metrics.items_processed += items_processed
            metrics.errors += error_count
            metrics.total_duration += duration

    def cache_hit_rate(self, operation: str | None = None) -> float:
        """Cache hit rate, overall or for a single operation."""
        with self._lock:
            if operation is not None:
                hits = self._cache_hits.get(operation, 0)
                misses = self._cache_misses.get(operation, 0)
            else:
                hits = sum(self._cache_hits.values())
                misses = sum(self._cache_misses.values())
        total = hits + misses
        return hits / total if total else 0.0

    def get_snapshot(self, labels: MetricLabels | None = None) -> MetricSnapshot:
        """Get current metrics snapshot.

        Args:
            labels: Optional labels to filter request counters by

        Returns:
            MetricSnapshot with current values
        """
        with self._lock:
            if labels:
                key = labels.to_key()
                requests = self._request_count.get(key, 0)
                successes = self._success_count.get(key, 0)
                errors = self._error_count.get(key, 0)
                samples = list(self._latency_samples.get(key, []))
                retries = self._retry_count.get(key, 0)
            else:
                requests = sum(self._request_count.values())
                successes = sum(self._success_count.values())
                errors = sum(self._error_count.values())
                samples = [s for v in self._latency_samples.values() for s in v]
                retries = sum(self._retry_count.values())

            return MetricSnapshot(
                total_requests=requests,
                successful_requests=successes,
                failed_requests=errors,
                latency_samples=samples,
                retry_count=retries,
                rate_limit_waits=self._rate_limit_wait,
                rate_limit_timeouts=self._rate_limit_timeouts,
                circuit_breaker_opens=sum(self._circuit_opens.values()),
                cache_hits=sum(self._cache_hits.values()),
                cache_misses=sum(self._cache_misses.values()),
                bulk={
                    name: BulkOperationMetrics(
                        runs=m.runs,
                        items_processed=m.items_processed,
                        errors=m.errors,
                        total_duration=m.total_duration,
                    )
                    for name, m in self._bulk.items()
                },
            )

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._request_count.clear()
            self._success_count.clear()
            self._error_count.clear()
            self._retry_count.clear()
            self._circuit_opens.clear()
            self._cache_hits.clear()
            self._cache_misses.clear()
            self._latency_samples.clear()
            self._rate_limit_wait = 0.0
            self._rate_limit_timeouts = 0
            self._bulk.clear()
