"""
Cooperative cancellation.

A CancelToken threads one abort signal from a bulk call down through every
suspension point of the pipeline: the orchestrator semaphore, the cache
single-flight join, the retry backoff sleep and the rate limiter queue.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from sportsfetch.errors import OperationCancelledError
from sportsfetch.telemetry.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger(__name__)

T = TypeVar("T")


class CancelReason(str, Enum):
    """Reasons for cancellation."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"
    FAIL_FAST = "fail_fast"
    SHUTDOWN = "shutdown"


@dataclass
class CancelState:
    """State of a cancellation token.

    Attributes:
        cancelled: Whether cancellation was requested
        reason: Reason for cancellation
        timestamp: Time of cancellation
    """

    cancelled: bool = False
    reason: CancelReason | None = None
    timestamp: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CancelToken:
    """Cancellation token for cooperative aborts.

    Example:
        >>> token = CancelToken()
        >>> task = asyncio.create_task(client.fetch_many(requests, cancel_token=token))
        >>> token.cancel(CancelReason.USER_REQUEST)
    """

    def __init__(self) -> None:
        self._state = CancelState()
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[CancelReason], Any]] = []

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Request cancellation.

        Args:
            reason: Reason for cancellation
            **metadata: Additional metadata

        Returns:
            True if cancellation was newly requested, False if already cancelled
        """
        if self._state.cancelled:
            return False

        self._state.cancelled = True
        self._state.reason = reason
        self._state.timestamp = time.time()
        self._state.metadata.update(metadata)
        self._event.set()

        for callback in list(self._callbacks):
            self._invoke(callback, reason)

        return True

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._state.cancelled

    @property
    def reason(self) -> CancelReason | None:
        """Get cancellation reason."""
        return self._state.reason

    @property
    def state(self) -> CancelState:
        """Get full cancellation state."""
        return self._state

    async def wait(self) -> CancelReason:
        """Wait until cancellation is requested."""
        await self._event.wait()
        return self._state.reason or CancelReason.USER_REQUEST

    def on_cancel(self, callback: Callable[[CancelReason], Any]) -> CancelToken:
        """Register a callback to be called on cancellation.

        Returns:
            Self for chaining
        """
        self._callbacks.append(callback)
        if self._state.cancelled and self._state.reason:
            self._invoke(callback, self._state.reason)
        return self

    def remove_callback(self, callback: Callable[[CancelReason], Any]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancelled."""
        if self._state.cancelled:
            reason = self._state.reason.value if self._state.reason else None
            raise OperationCancelledError(reason=reason)

    def _invoke(self, callback: Callable[[CancelReason], Any], reason: CancelReason) -> None:
        try:
            callback(reason)
        except Exception:
            logger.exception("Cancel callback failed", reason=reason.value)

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.is_cancelled}, reason={self.reason})"


async def wait_cancellable(
    awaitable: Awaitable[T],
    token: CancelToken | None,
    *,
    timeout: float | None = None,
) -> T:
    """Await a future or coroutine, aborting early if the token is cancelled.

    The awaited object is cancelled when the token fires or the timeout
    elapses, so no work outlives the caller.

    Raises:
        OperationCancelledError: If the token was cancelled first
        asyncio.TimeoutError: If the timeout elapsed first
    """
    inner = asyncio.ensure_future(awaitable)
    if token is None:
        if timeout is None:
            return await inner
        return await asyncio.wait_for(inner, timeout=timeout)

    if token.is_cancelled:
        inner.cancel()
        token.raise_if_cancelled()

    watcher = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {inner, watcher},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        inner.cancel()
        raise
    finally:
        watcher.cancel()

    if inner in done:
        return inner.result()

    inner.cancel()
    if watcher in done:
        token.raise_if_cancelled()
    raise asyncio.TimeoutError()


async def cancellable_sleep(delay: float, token: CancelToken | None = None) -> None:
    """Sleep for ``delay`` seconds unless the token is cancelled first."""
    if delay <= 0:
        if token is not None:
            token.raise_if_cancelled()
        return
    if token is None:
        await asyncio.sleep(delay)
        return
    token.raise_if_cancelled()
    try:
        await asyncio.wait_for(token.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    token.raise_if_cancelled()
