"""弹性执行器：统一的分类重试与熔断控制。

Resilient executor combining classified retry with a circuit breaker.

Each attempt passes the breaker, runs the operation and records the
classified outcome. Retryable failures back off and try again while the
circuit allows it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from sportsfetch.cancel import cancellable_sleep
from sportsfetch.errors import CircuitOpenError
from sportsfetch.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from sportsfetch.resilience.retry import RetryConfig, RetryPolicy
from sportsfetch.telemetry.logger import get_logger
from sportsfetch.telemetry.metrics import MetricLabels

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sportsfetch.cancel import CancelToken
    from sportsfetch.resilience.signals import CircuitBreakerSnapshot
    from sportsfetch.telemetry.metrics import MetricsCollector
    from sportsfetch.types.outcome import Failure, OperationOutcome

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ResilientConfig:
    """Combined configuration for retry and circuit breaking.

    Attributes:
        retry: Retry configuration
        circuit_breaker: Circuit breaker configuration
    """

    retry: RetryConfig | None = None
    circuit_breaker: CircuitBreakerConfig | None = None

    @classmethod
    def default(cls) -> ResilientConfig:
        """Create default configuration with both patterns enabled."""
        return cls(retry=RetryConfig(), circuit_breaker=CircuitBreakerConfig())


@dataclass
class ExecutionStats:
    """Lifetime statistics for an executor.

    Attributes:
        executions: Calls to execute()
        successes: Calls that returned a value
        failures: Calls that raised an upstream failure
        retries: Backoff sleeps scheduled
        rejected: Calls or attempts rejected by the open circuit
    """

    executions: int = 0
    successes: int = 0
    failures: int = 0
    retries: int = 0
    rejected: int = 0


class ResilientExecutor:
    """Executor combining retry and circuit breaking.

    The operation returns an OperationOutcome for every attempt. Exceptions
    it raises instead (rate limit timeouts, cancellation) pass through
    unchanged and are not counted as upstream failures.

    Example:
        >>> executor = ResilientExecutor(ResilientConfig.default(), name="espn")
        >>> body = await executor.execute(attempt_fetch)
    """

    def __init__(
        self,
        config: ResilientConfig | None = None,
        name: str = "default",
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._config = config or ResilientConfig.default()
        self._name = name
        self._metrics = metrics

        self._retry = RetryPolicy(self._config.retry or RetryConfig.no_retry())
        self._circuit_breaker = (
            CircuitBreaker(name, self._config.circuit_breaker, metrics=metrics)
            if self._config.circuit_breaker
            else None
        )
        self._stats = ExecutionStats()

    @property
    def name(self) -> str:
        return self._name

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry

    @property
    def circuit_breaker(self) -> CircuitBreaker | None:
        return self._circuit_breaker

    @property
    def circuit_state(self) -> CircuitState | None:
        return self._circuit_breaker.state if self._circuit_breaker else None

    async def execute(
        self,
        operation: Callable[[], Awaitable[OperationOutcome[T]]],
        *,
        cancel_token: CancelToken | None = None,
        labels: MetricLabels | None = None,
    ) -> T:
        """Run an operation with retries under the circuit breaker.

        Args:
            operation: Async callable producing one attempt's outcome
            cancel_token: Optional token aborting backoff sleeps
            labels: Metric labels for retry counters

        Returns:
            The successful attempt's value

        Raises:
            CircuitOpenError: The circuit rejected an attempt
            UpstreamError: A non-retryable failure, or the last failure
                after exhausting attempts
        """
        self._stats.executions += 1
        attempt = 0

        while True:
            attempt += 1
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            outcome = await self._attempt(operation)

            if outcome.ok:
                self._stats.successes += 1
                return outcome.value

            failure: Failure = outcome
            failure.error.context.attempt = attempt

            if not self._retry.should_retry(failure.retryable, attempt):
                self._stats.failures += 1
                if failure.retryable:
                    logger.warning(
                        "Retries exhausted",
                        executor=self._name,
                        attempts=attempt,
                        error=failure.error.message,
                    )
                raise failure.error

            delay = self._retry.calculate_delay(attempt, failure.retry_after)
            self._stats.retries += 1
            if self._metrics is not None:
                self._metrics.record_retry(labels or MetricLabels(), attempt)
            logger.warning(
                "Retrying after transient failure",
                executor=self._name,
                attempt=attempt,
                max_attempts=self._retry.max_attempts,
                delay=round(delay, 3),
                error_class=failure.error.error_class.value,
                status_code=failure.error.status_code,
            )
            await cancellable_sleep(delay, cancel_token)

    async def _attempt(
        self, operation: Callable[[], Awaitable[OperationOutcome[T]]]
    ) -> OperationOutcome[T]:
        if self._circuit_breaker is None:
            return await operation()

        try:
            admission = self._circuit_breaker.before_call()
        except CircuitOpenError:
            self._stats.rejected += 1
            raise

        started = time.monotonic()
        try:
            outcome = await operation()
        except BaseException:
            self._circuit_breaker.release_trial(admission)
            raise

        self._circuit_breaker.record_outcome(outcome, admission)
        if not outcome.ok:
            logger.debug(
                "Attempt failed",
                executor=self._name,
                elapsed=round(time.monotonic() - started, 3),
                retryable=outcome.retryable,
            )
        return outcome

    def get_stats(self) -> ExecutionStats:
        return ExecutionStats(
            executions=self._stats.executions,
            successes=self._stats.successes,
            failures=self._stats.failures,
            retries=self._stats.retries,
            rejected=self._stats.rejected,
        )

    def circuit_snapshot(self) -> CircuitBreakerSnapshot | None:
        return self._circuit_breaker.snapshot() if self._circuit_breaker else None

    def reset(self) -> None:
        """Reset the circuit breaker and statistics."""
        if self._circuit_breaker:
            self._circuit_breaker.reset()
        self._stats = ExecutionStats()

    def __repr__(self) -> str:
        state = self.circuit_state.value if self.circuit_state else "disabled"
        return f"ResilientExecutor(name={self._name!r}, circuit={state})"
