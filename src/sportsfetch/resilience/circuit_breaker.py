"""
Circuit breaker for fault isolation.

Implements the circuit breaker pattern with three states:
- Closed: Normal operation, consecutive failures are counted
- Open: Circuit tripped, calls are rejected without invoking the operation
- Half-Open: Exactly one trial call decides whether to close or reopen
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from sportsfetch.errors import CircuitOpenError, ValidationError
from sportsfetch.resilience.signals import CircuitBreakerSnapshot
from sportsfetch.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sportsfetch.telemetry.metrics import MetricsCollector
    from sportsfetch.types.outcome import OperationOutcome

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures that trip the circuit
        break_duration: Seconds the circuit stays open before a trial call
    """

    failure_threshold: int = 5
    break_duration: float = 60.0

    def validate(self) -> None:
        if self.failure_threshold < 1:
            raise ValidationError(
                "failure_threshold must be >= 1",
                field="failure_threshold",
                actual=self.failure_threshold,
            )
        if self.break_duration < 0:
            raise ValidationError(
                "break_duration must be >= 0",
                field="break_duration",
                actual=self.break_duration,
            )

    @classmethod
    def default(cls) -> CircuitBreakerConfig:
        """Create default configuration."""
        return cls()


@dataclass
class CircuitStats:
    """Lifetime statistics for a circuit breaker."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    state_changes: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None


class CircuitBreaker:
    """Circuit breaker owning one CircuitState.

    All transitions happen inside short synchronous sections guarded by a
    lock, so the breaker has a single writer and status reads never see a
    half-applied transition.

    Every transition to Open starts a new generation. ``before_call`` returns
    the generation the call was admitted in; an outcome reported for an older
    generation only updates statistics, so a slow call admitted before the
    circuit opened cannot resolve the half-open trial.

    Example:
        >>> breaker = CircuitBreaker("espn", CircuitBreakerConfig(failure_threshold=3))
        >>> admission = breaker.before_call()
        >>> outcome = await attempt()
        >>> breaker.record_outcome(outcome, admission)
    """

    def __init__(
        self,
        name: str = "default",
        config: CircuitBreakerConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._name = name
        self._config = config or CircuitBreakerConfig()
        self._config.validate()
        self._metrics = metrics
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._generation = 0

        self._stats = CircuitStats()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        """Current state; an elapsed Open circuit reports Open until the next call."""
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state == CircuitState.HALF_OPEN

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state. Caller must hold the lock."""
        if new_state == self._state:
            return

        previous = self._state
        self._state = new_state
        self._stats.state_changes += 1

        if new_state == CircuitState.OPEN:
            self._generation += 1
            self._opened_at = time.monotonic()
            self._trial_in_flight = False
            if self._metrics is not None:
                self._metrics.record_circuit_open(self._name)
            logger.warning(
                "Circuit opened",
                circuit=self._name,
                previous=previous.value,
                failures=self._failure_count,
                break_duration=self._config.break_duration,
            )
        elif new_state == CircuitState.HALF_OPEN:
            logger.info("Circuit half-open, admitting trial call", circuit=self._name)
        elif new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._opened_at = None
            self._trial_in_flight = False
            logger.info("Circuit closed", circuit=self._name, previous=previous.value)

    def _time_until_retry_locked(self, now: float) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self._config.break_duration - (now - self._opened_at))

    def get_time_until_retry(self) -> float | None:
        """Seconds until an open circuit admits a trial call, or None if not open."""
        with self._lock:
            if self._state != CircuitState.OPEN:
                return None
            return self._time_until_retry_locked(time.monotonic())

    def before_call(self) -> int:
        """Admit or reject a call.

        Moves an elapsed Open circuit to HalfOpen and claims its single trial
        slot for the caller.

        Returns:
            The generation the call was admitted in, to pass back when
            recording its outcome

        Raises:
            CircuitOpenError: If the circuit rejects the call
        """
        now = time.monotonic()
        with self._lock:
            self._stats.total_requests += 1

            if self._state == CircuitState.OPEN:
                remaining = self._time_until_retry_locked(now)
                if remaining > 0:
                    self._stats.rejected_requests += 1
                    raise CircuitOpenError(
                        f"Circuit '{self._name}' is open",
                        time_until_retry=remaining,
                        circuit_name=self._name,
                    )
                self._transition_to(CircuitState.HALF_OPEN)

            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    self._stats.rejected_requests += 1
                    raise CircuitOpenError(
                        f"Circuit '{self._name}' is half-open with a trial in flight",
                        time_until_retry=0.0,
                        circuit_name=self._name,
                    )
                self._trial_in_flight = True

            return self._generation

    def _is_stale(self, generation: int | None) -> bool:
        """Caller must hold the lock."""
        return generation is not None and generation != self._generation

    def record_success(self, generation: int | None = None) -> None:
        """Record a success.

        Args:
            generation: Admission returned by ``before_call``; None records
                against the current generation
        """
        with self._lock:
            self._stats.successful_requests += 1
            self._stats.last_success_time = time.monotonic()

            if self._is_stale(generation):
                logger.debug("Ignoring outcome from earlier generation", circuit=self._name)
                return
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    def record_failure(self, generation: int | None = None) -> None:
        now = time.monotonic()
        with self._lock:
            self._stats.failed_requests += 1
            self._stats.last_failure_time = now

            if self._is_stale(generation):
                logger.debug("Ignoring outcome from earlier generation", circuit=self._name)
                return
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._failure_count += 1
                if self._failure_count >= self._config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)

    def record_outcome(
        self, outcome: OperationOutcome[T], generation: int | None = None
    ) -> None:
        """Record a classified outcome."""
        if outcome.ok:
            self.record_success(generation)
        else:
            self.record_failure(generation)

    def release_trial(self, generation: int | None = None) -> None:
        """Free an unresolved trial slot without changing state.

        Used when the trial call ended without an outcome, e.g. it was
        cancelled or timed out waiting for a rate limit slot.
        """
        with self._lock:
            if self._is_stale(generation):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._trial_in_flight = False

    async def call(
        self, operation: Callable[[], Awaitable[OperationOutcome[T]]]
    ) -> OperationOutcome[T]:
        """Run one operation through the breaker and record its outcome.

        Raises:
            CircuitOpenError: If the circuit rejects the call
        """
        admission = self.before_call()
        try:
            outcome = await operation()
        except BaseException:
            self.release_trial(admission)
            raise
        self.record_outcome(outcome, admission)
        return outcome

    def reset(self) -> None:
        """Reset circuit breaker to closed state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None
            self._trial_in_flight = False
            self._generation += 1

    def get_stats(self) -> CircuitStats:
        """Get a copy of the lifetime statistics."""
        with self._lock:
            return CircuitStats(
                total_requests=self._stats.total_requests,
                successful_requests=self._stats.successful_requests,
                failed_requests=self._stats.failed_requests,
                rejected_requests=self._stats.rejected_requests,
                state_changes=self._stats.state_changes,
                last_failure_time=self._stats.last_failure_time,
                last_success_time=self._stats.last_success_time,
            )

    def snapshot(self) -> CircuitBreakerSnapshot:
        """Read-only view for diagnostics."""
        now = time.monotonic()
        with self._lock:
            return CircuitBreakerSnapshot(
                name=self._name,
                state=self._state.value,
                failure_count=self._failure_count,
                failure_threshold=self._config.failure_threshold,
                time_until_retry=(
                    self._time_until_retry_locked(now)
                    if self._state == CircuitState.OPEN
                    else None
                ),
                rejected_requests=self._stats.rejected_requests,
            )

    def __repr__(self) -> str:
        return (
            f"CircuitBreaker(name={self._name!r}, state={self._state.value}, "
            f"failures={self._failure_count}/{self._config.failure_threshold})"
        )
