"""
Rate limiter using a sliding time window.

A request issued at T counts against capacity until T + window. A burst
allowance lets short spikes through without queueing; beyond that, callers
wait in a strict FIFO queue, each with its own deadline.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sportsfetch.cancel import wait_cancellable
from sportsfetch.errors import (
    OperationCancelledError,
    RateLimitTimeout,
    ValidationError,
)
from sportsfetch.telemetry.logger import get_logger

if TYPE_CHECKING:
    from sportsfetch.cancel import CancelToken

logger = get_logger(__name__)

# Reported as remaining and capacity by an unlimited limiter
UNLIMITED = -1


@dataclass
class RateLimiterConfig:
    """Configuration for the sliding window rate limiter.

    Attributes:
        max_requests: Steady-state requests per window (0 = unlimited)
        window_seconds: Window duration in seconds
        burst_allowance: Extra requests admitted above max_requests
        queue_timeout: Seconds a caller may wait in the queue
    """

    max_requests: int = 100
    window_seconds: float = 60.0
    burst_allowance: int = 10
    queue_timeout: float = 5.0

    @property
    def capacity(self) -> int:
        """Total slots available in one window."""
        return self.max_requests + self.burst_allowance

    @property
    def is_unlimited(self) -> bool:
        return self.max_requests <= 0

    def validate(self) -> None:
        """Reject inconsistent settings.

        Raises:
            ValidationError: If any value is out of range
        """
        if self.max_requests < 0:
            raise ValidationError(
                "max_requests must be >= 0", field="max_requests", actual=self.max_requests
            )
        if self.window_seconds <= 0:
            raise ValidationError(
                "window_seconds must be > 0",
                field="window_seconds",
                actual=self.window_seconds,
            )
        if self.burst_allowance < 0:
            raise ValidationError(
                "burst_allowance must be >= 0",
                field="burst_allowance",
                actual=self.burst_allowance,
            )
        if self.queue_timeout < 0:
            raise ValidationError(
                "queue_timeout must be >= 0",
                field="queue_timeout",
                actual=self.queue_timeout,
            )

    @classmethod
    def strict(
        cls, max_requests: int, window_seconds: float, queue_timeout: float = 5.0
    ) -> RateLimiterConfig:
        """Create a config with no burst allowance."""
        return cls(
            max_requests=max_requests,
            window_seconds=window_seconds,
            burst_allowance=0,
            queue_timeout=queue_timeout,
        )

    @classmethod
    def unlimited(cls) -> RateLimiterConfig:
        """Create an unlimited rate limiter config."""
        return cls(max_requests=0, burst_allowance=0)


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only view of the limiter.

    An unlimited limiter reports ``UNLIMITED`` (-1) for remaining and capacity.

    Attributes:
        remaining: Slots still free in the current window
        in_window: Requests counted in the trailing window
        total_issued: Slots granted since creation or last reset
        capacity: max_requests + burst_allowance
        queued: Callers currently waiting
        time_until_reset: Seconds until the oldest counted request expires
        is_limited: True when no slot is free
    """

    remaining: int
    in_window: int
    total_issued: int
    capacity: int
    queued: int
    time_until_reset: float
    is_limited: bool

    @property
    def is_unlimited(self) -> bool:
        return self.capacity == UNLIMITED


@dataclass
class _Waiter:
    future: asyncio.Future[float]
    deadline: float


class SlidingWindowRateLimiter:
    """Sliding window rate limiter with a FIFO wait queue.

    Example:
        >>> limiter = SlidingWindowRateLimiter(RateLimiterConfig(max_requests=5))
        >>> waited = await limiter.acquire()
        >>> # Make request
    """

    def __init__(self, config: RateLimiterConfig | None = None) -> None:
        self._config = config or RateLimiterConfig()
        self._config.validate()
        self._lock = threading.Lock()

        self._timestamps: deque[float] = deque()
        self._waiters: deque[_Waiter] = deque()
        self._wake_handle: asyncio.TimerHandle | None = None

        self._total_issued = 0
        self._total_timeouts = 0

    @property
    def config(self) -> RateLimiterConfig:
        return self._config

    def _prune(self, now: float) -> None:
        cutoff = now - self._config.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def _has_slot(self) -> bool:
        return len(self._timestamps) < self._config.capacity

    def _issue(self, now: float) -> None:
        self._timestamps.append(now)
        self._total_issued += 1

    def try_acquire(self) -> bool:
        """Consume a slot if one is free, without waiting.

        Returns:
            True if a slot was consumed
        """
        if self._config.is_unlimited:
            with self._lock:
                self._total_issued += 1
            return True

        now = time.monotonic()
        with self._lock:
            self._prune(now)
            if self._has_slot():
                self._issue(now)
                return True
            return False

    async def acquire(self, cancel_token: CancelToken | None = None) -> float:
        """Acquire a slot, queueing FIFO if the window is full.

        Args:
            cancel_token: Optional token aborting the wait

        Returns:
            Seconds spent waiting

        Raises:
            RateLimitTimeout: If the queue deadline elapsed first
            OperationCancelledError: If the token was cancelled first
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        if self._config.is_unlimited:
            self.try_acquire()
            return 0.0

        start = time.monotonic()
        loop = asyncio.get_running_loop()

        with self._lock:
            self._prune(start)
            if not self._waiters and self._has_slot():
                self._issue(start)
                return 0.0

            waiter = _Waiter(
                future=loop.create_future(),
                deadline=start + self._config.queue_timeout,
            )
            self._waiters.append(waiter)
            queued = len(self._waiters)
            self._schedule_wakeup(loop, start)

        logger.debug(
            "Rate limit reached, queueing request",
            queued=queued,
            queue_timeout=self._config.queue_timeout,
        )

        try:
            await wait_cancellable(
                waiter.future,
                cancel_token,
                timeout=max(0.0, waiter.deadline - time.monotonic()),
            )
        except asyncio.TimeoutError:
            waited = time.monotonic() - start
            with self._lock:
                self._total_timeouts += 1
            logger.warning(
                "Rate limit queue timeout",
                waited=round(waited, 3),
                queue_timeout=self._config.queue_timeout,
            )
            raise RateLimitTimeout(
                f"No rate limit slot within {self._config.queue_timeout}s",
                waited=waited,
                queue_timeout=self._config.queue_timeout,
            ) from None
        finally:
            self._discard(waiter)

        return time.monotonic() - start

    def _discard(self, waiter: _Waiter) -> None:
        with self._lock:
            try:
                self._waiters.remove(waiter)
            except ValueError:
                pass

    def _schedule_wakeup(self, loop: asyncio.AbstractEventLoop, now: float) -> None:
        """Arm a timer for when the head waiter can next be served.

        Caller must hold the lock.
        """
        if not self._waiters or self._wake_handle is not None:
            return
        if self._has_slot() or not self._timestamps:
            delay = 0.0
        else:
            delay = max(0.0, self._timestamps[0] + self._config.window_seconds - now)
        self._wake_handle = loop.call_later(delay, self._drain, loop)

    def _drain(self, loop: asyncio.AbstractEventLoop) -> None:
        """Serve queued waiters in FIFO order while slots are free."""
        now = time.monotonic()
        with self._lock:
            self._wake_handle = None
            self._prune(now)
            while self._waiters:
                head = self._waiters[0]
                if head.future.done():
                    self._waiters.popleft()
                    continue
                if not self._has_slot():
                    break
                self._waiters.popleft()
                self._issue(now)
                head.future.set_result(now)
            self._schedule_wakeup(loop, now)

    def get_status(self) -> RateLimitStatus:
        """Return a read-only status view; never mutates limiter state."""
        now = time.monotonic()
        cutoff = now - self._config.window_seconds
        with self._lock:
            live = [t for t in self._timestamps if t > cutoff]
            total_issued = self._total_issued
            queued = sum(1 for w in self._waiters if not w.future.done())

        if self._config.is_unlimited:
            return RateLimitStatus(
                remaining=UNLIMITED,
                in_window=0,
                total_issued=total_issued,
                capacity=UNLIMITED,
                queued=0,
                time_until_reset=0.0,
                is_limited=False,
            )

        capacity = self._config.capacity
        remaining = max(0, capacity - len(live))
        time_until_reset = (
            max(0.0, live[0] + self._config.window_seconds - now) if live else 0.0
        )
        return RateLimitStatus(
            remaining=remaining,
            in_window=len(live),
            total_issued=total_issued,
            capacity=capacity,
            queued=queued,
            time_until_reset=time_until_reset,
            is_limited=remaining == 0,
        )

    @property
    def total_timeouts(self) -> int:
        return self._total_timeouts

    def reset(self) -> None:
        """Clear all timestamps and fail every queued waiter."""
        with self._lock:
            if self._wake_handle is not None:
                self._wake_handle.cancel()
                self._wake_handle = None
            waiters = list(self._waiters)
            self._waiters.clear()
            self._timestamps.clear()
            self._total_issued = 0
            self._total_timeouts = 0

        for waiter in waiters:
            if not waiter.future.done():
                waiter.future.set_exception(
                    OperationCancelledError("Rate limiter reset", reason="reset")
                )
        if waiters:
            logger.info("Rate limiter reset", dropped_waiters=len(waiters))

    def __repr__(self) -> str:
        status = self.get_status()
        return (
            f"SlidingWindowRateLimiter(in_window={status.in_window}, "
            f"capacity={status.capacity}, queued={status.queued})"
        )
