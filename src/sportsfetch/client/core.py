"""核心客户端实现：在限流、重试、熔断与缓存之上统一获取体育数据。

Core SportsDataClient implementation.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from sportsfetch.batch import BulkOrchestrator
from sportsfetch.cache import CacheManager, WarmResult
from sportsfetch.config import ClientSettings
from sportsfetch.errors import (
    RateLimitTimeout,
    SportsFetchError,
    TransportError,
    classify_exception,
    classify_response,
)
from sportsfetch.resilience import (
    PipelineSignals,
    ResilientExecutor,
    SlidingWindowRateLimiter,
)
from sportsfetch.telemetry import (
    HealthCheckResult,
    HealthStatus,
    MetricLabels,
    MetricsCollector,
    get_logger,
    log_context,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sportsfetch.batch import BatchResult, BulkProgress
    from sportsfetch.cancel import CancelToken
    from sportsfetch.client.builder import SportsDataClientBuilder
    from sportsfetch.transport import FetchTransport
    from sportsfetch.types import FetchRequest, OperationOutcome

logger = get_logger(__name__)


class SportsDataClient:
    """Resilient client for a rate-limited sports data API.

    Every fetch goes through the cache first; on a miss one caller runs the
    resilient path (circuit breaker, retries, rate limiter, transport) and
    every concurrent caller for the same key shares its result.

    Example:
        >>> async with SportsDataClient() as client:
        ...     body = await client.fetch(
        ...         FetchRequest("GetSeason", "/sports/football/leagues/nfl/seasons/2024",
        ...                      category="season", params=(2024,))
        ...     )

        >>> # Bulk
        >>> result = await client.fetch_many(requests, max_concurrency=3)
        >>> print(result.success_count, result.failure_count)
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        transport: FetchTransport | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Client settings (defaults when omitted)
            transport: Transport override; built from settings when omitted
                and then owned (closed) by the client
            metrics: Metrics collector shared by all components
        """
        self._settings = settings or ClientSettings()
        if self._settings.logging.configure:
            self._settings.logging.apply()

        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._owns_transport = transport is None
        self._transport: FetchTransport = (
            transport if transport is not None else self._settings.transport.build()
        )

        retry = self._settings.retry
        self._retryable_status_codes = frozenset(retry.retryable_status_codes)
        self._retry_on_timeout = retry.retry_on_timeout

        self._limiter = SlidingWindowRateLimiter(self._settings.rate_limit.to_config())
        self._executor = ResilientExecutor(
            self._settings.resilient_config(),
            name="upstream",
            metrics=self._metrics,
        )
        self._cache = CacheManager(self._settings.cache.to_config(), metrics=self._metrics)
        self._orchestrator = BulkOrchestrator(
            self._settings.bulk.to_config(), metrics=self._metrics
        )
        self._closed = False

    @classmethod
    def builder(cls) -> SportsDataClientBuilder:
        """Get a builder for fluent configuration.

        Example:
            >>> client = (
            ...     SportsDataClient.builder()
            ...     .base_url("https://sports.core.api.espn.com/v2")
            ...     .rate_limit(max_requests=50, window_seconds=60)
            ...     .build()
            ... )
        """
        from sportsfetch.client.builder import SportsDataClientBuilder

        return SportsDataClientBuilder()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def rate_limiter(self) -> SlidingWindowRateLimiter:
        return self._limiter

    @property
    def executor(self) -> ResilientExecutor:
        return self._executor

    @property
    def cache(self) -> CacheManager:
        return self._cache

    @property
    def orchestrator(self) -> BulkOrchestrator:
        return self._orchestrator

    def cache_key(self, request: FetchRequest) -> str:
        """Cache key a request is stored under."""
        return self._cache.generate_key(*request.cache_key_parts())

    async def fetch(
        self,
        request: FetchRequest,
        *,
        ttl: float | None = None,
        cancel_token: CancelToken | None = None,
    ) -> bytes:
        """Fetch one resource.

        Args:
            request: What to fetch
            ttl: Cache TTL override in seconds
            cancel_token: Token aborting waits and backoff sleeps

        Returns:
            Response body bytes

        Raises:
            UpstreamError: The upstream call failed for good
            CircuitOpenError: The circuit breaker rejected the call
            RateLimitTimeout: No rate limit slot within the queue timeout
            OperationCancelledError: The token was cancelled
        """
        key = self.cache_key(request)
        with log_context(
            operation=request.operation,
            endpoint=request.endpoint,
            category=request.category_name,
        ):
            return await self._cache.get_or_set(
                key,
                lambda: self._load(request, cancel_token),
                category=request.category,
                ttl=ttl,
                cancel_token=cancel_token,
            )

    async def _load(
        self, request: FetchRequest, cancel_token: CancelToken | None = None
    ) -> bytes:
        labels = MetricLabels(
            operation=request.operation,
            category=request.category_name,
            endpoint=request.endpoint,
        )
        return await self._executor.execute(
            lambda: self._attempt(request, labels, cancel_token),
            cancel_token=cancel_token,
            labels=labels,
        )

    async def _attempt(
        self,
        request: FetchRequest,
        labels: MetricLabels,
        cancel_token: CancelToken | None,
    ) -> OperationOutcome[bytes]:
        """One rate-limited upstream attempt, classified."""
        try:
            waited = await self._limiter.acquire(cancel_token)
        except RateLimitTimeout:
            self._metrics.record_rate_limit_timeout()
            raise
        if waited > 0:
            self._metrics.record_rate_limit_wait(waited)

        started = time.monotonic()
        try:
            response = await self._transport.fetch(request.endpoint, cancel_token)
        except TransportError as exc:
            outcome: OperationOutcome[bytes] = classify_exception(
                exc, endpoint=request.endpoint, retry_on_timeout=self._retry_on_timeout
            )
        else:
            outcome = classify_response(response, self._retryable_status_codes)

        latency = time.monotonic() - started
        if outcome.ok:
            self._metrics.record_request(labels, latency)
        else:
            error = outcome.error
            self._metrics.record_request(
                MetricLabels(
                    operation=labels.operation,
                    category=labels.category,
                    endpoint=labels.endpoint,
                    status=str(error.status_code or ""),
                    error_class=error.error_class.value,
                ),
                latency,
                status="error",
            )
        return outcome

    async def fetch_many(
        self,
        requests: Iterable[FetchRequest],
        *,
        on_progress: Callable[[BulkProgress], None] | None = None,
        cancel_token: CancelToken | None = None,
        **overrides: Any,
    ) -> BatchResult[bytes]:
        """Fetch many resources through the bulk orchestrator.

        Args:
            requests: What to fetch
            on_progress: Progress callback
            cancel_token: Token aborting the whole run
            **overrides: batch_size, max_concurrency, continue_on_error,
                distribution or operation_type

        Returns:
            BatchResult with bodies in completion order
        """
        overrides.setdefault("operation_type", "fetch_many")

        async def process(request: FetchRequest) -> bytes:
            return await self.fetch(request, cancel_token=cancel_token)

        return await self._orchestrator.process_in_batches(
            list(requests),
            process,
            on_progress=on_progress,
            cancel_token=cancel_token,
            **overrides,
        )

    async def warm(self, requests: Iterable[FetchRequest]) -> WarmResult:
        """Populate the cache for ``requests`` ahead of demand.

        Requests are grouped by category so each group gets its TTL.
        """
        groups: dict[str, dict[str, FetchRequest]] = defaultdict(dict)
        for request in requests:
            groups[request.category_name][self.cache_key(request)] = request

        combined = WarmResult(enabled=self._cache.config.warming_enabled)
        for category, by_key in groups.items():

            async def loader(key: str, by_key: dict[str, FetchRequest] = by_key) -> bytes:
                return await self._load(by_key[key])

            result = await self._cache.warm(by_key, loader, category=category)
            if not result.enabled:
                return result
            combined.warmed.extend(result.warmed)
            combined.already_cached.extend(result.already_cached)
            combined.failed.update(result.failed)
        return combined

    async def invalidate(self, pattern: str) -> int:
        """Remove every cached entry whose key matches ``pattern``.

        Returns:
            Number of entries removed
        """
        return await self._cache.remove_by_pattern(pattern)

    def get_status(self) -> PipelineSignals:
        """Read-only snapshot of limiter, breaker and cache state."""
        return PipelineSignals(
            rate_limiter=self._limiter.get_status(),
            circuit_breaker=self._executor.circuit_snapshot(),
            cache=self._cache.stats.to_dict(),
        )

    async def check_health(self, probe_endpoint: str = "/") -> HealthCheckResult:
        """Probe the upstream.

        Returns:
            HEALTHY when the probe returns a body, DEGRADED on an empty body,
            a half-open circuit or a saturated rate limiter, UNHEALTHY on an
            open circuit or any upstream error
        """
        circuit = self._executor.circuit_snapshot()
        details: dict[str, Any] = {
            "endpoint": probe_endpoint,
            "circuit": circuit.to_dict() if circuit else None,
        }

        if circuit is not None and circuit.is_open:
            return HealthCheckResult(
                name="upstream",
                status=HealthStatus.UNHEALTHY,
                message="Circuit breaker is open",
                details=details,
            )

        started = time.monotonic()
        try:
            await self._limiter.acquire()
            response = await self._transport.fetch(probe_endpoint)
        except RateLimitTimeout as exc:
            return HealthCheckResult(
                name="upstream",
                status=HealthStatus.DEGRADED,
                message=exc.message,
                latency_ms=(time.monotonic() - started) * 1000,
                details=details,
            )
        except SportsFetchError as exc:
            logger.warning("Health probe failed", endpoint=probe_endpoint, error=str(exc))
            return HealthCheckResult(
                name="upstream",
                status=HealthStatus.UNHEALTHY,
                message=exc.message,
                latency_ms=(time.monotonic() - started) * 1000,
                details=details,
            )

        latency_ms = (time.monotonic() - started) * 1000
        details["status_code"] = response.status_code
        outcome = classify_response(response, reject_empty_body=False)

        if not outcome.ok:
            status, message = HealthStatus.UNHEALTHY, outcome.error.message
        elif not response.content:
            status, message = HealthStatus.DEGRADED, "Probe returned an empty body"
        elif circuit is not None and circuit.is_half_open:
            status, message = HealthStatus.DEGRADED, "Circuit breaker is half-open"
        else:
            status, message = HealthStatus.HEALTHY, "Upstream reachable"

        return HealthCheckResult(
            name="upstream",
            status=status,
            message=message,
            latency_ms=latency_ms,
            details=details,
        )

    def reset_resilience(self) -> None:
        """Reset circuit breaker state and execution statistics."""
        self._executor.reset()

    async def close(self) -> None:
        """Release waiters, the cache and an owned transport."""
        if self._closed:
            return
        self._closed = True
        self._limiter.reset()
        await self._cache.close()
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> SportsDataClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"SportsDataClient(transport={self._transport!r}, "
            f"limiter={self._limiter!r}, executor={self._executor!r})"
        )
