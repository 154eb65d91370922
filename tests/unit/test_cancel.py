"""Tests for cancel module."""

import asyncio

import pytest

from sportsfetch.cancel import (
    CancelReason,
    CancelToken,
    cancellable_sleep,
    wait_cancellable,
)
from sportsfetch.errors import OperationCancelledError


class TestCancelToken:
    """Tests for CancelToken."""

    def test_initial_state(self) -> None:
        """Test initial token state."""
        token = CancelToken()
        assert token.is_cancelled is False
        assert token.reason is None

    def test_cancel(self) -> None:
        """Test cancellation."""
        token = CancelToken()
        assert token.cancel(CancelReason.SHUTDOWN) is True
        assert token.is_cancelled is True
        assert token.reason == CancelReason.SHUTDOWN

    def test_cancel_twice(self) -> None:
        """Test cancelling twice returns False."""
        token = CancelToken()
        assert token.cancel() is True
        assert token.cancel() is False

    def test_cancel_with_metadata(self) -> None:
        """Test cancellation with metadata."""
        token = CancelToken()
        token.cancel(CancelReason.TIMEOUT, deadline="30s")
        assert token.state.metadata["deadline"] == "30s"

    def test_callbacks(self) -> None:
        """Test callbacks run on cancel and when registered late."""
        token = CancelToken()
        seen: list[CancelReason] = []
        token.on_cancel(seen.append)
        token.cancel(CancelReason.FAIL_FAST)
        token.on_cancel(seen.append)
        assert seen == [CancelReason.FAIL_FAST, CancelReason.FAIL_FAST]

    def test_removed_callback_not_called(self) -> None:
        """Test remove_callback."""
        token = CancelToken()
        seen: list[CancelReason] = []
        token.on_cancel(seen.append)
        token.remove_callback(seen.append)
        token.cancel()
        assert seen == []

    def test_failing_callback_does_not_block_others(self) -> None:
        """Test one failing callback does not stop the rest."""
        token = CancelToken()
        seen: list[CancelReason] = []

        def broken(reason: CancelReason) -> None:
            raise RuntimeError("boom")

        token.on_cancel(broken)
        token.on_cancel(seen.append)
        token.cancel()
        assert seen == [CancelReason.USER_REQUEST]

    def test_raise_if_cancelled(self) -> None:
        """Test raise_if_cancelled carries the reason."""
        token = CancelToken()
        token.raise_if_cancelled()
        token.cancel(CancelReason.TIMEOUT)
        with pytest.raises(OperationCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.reason == "timeout"

    @pytest.mark.asyncio
    async def test_wait(self) -> None:
        """Test waiting for cancellation."""
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        reason = await asyncio.wait_for(token.wait(), timeout=1.0)
        assert reason == CancelReason.USER_REQUEST


class TestWaitCancellable:
    """Tests for wait_cancellable and cancellable_sleep."""

    @pytest.mark.asyncio
    async def test_returns_result(self) -> None:
        """Test the awaited result is returned."""

        async def work() -> int:
            await asyncio.sleep(0.01)
            return 42

        assert await wait_cancellable(work(), CancelToken()) == 42

    @pytest.mark.asyncio
    async def test_no_token(self) -> None:
        """Test waiting without a token."""

        async def work() -> str:
            return "done"

        assert await wait_cancellable(work(), None) == "done"

    @pytest.mark.asyncio
    async def test_cancel_aborts_and_cancels_inner(self) -> None:
        """Test the token aborts the wait and cancels the inner task."""
        token = CancelToken()
        inner = asyncio.ensure_future(asyncio.sleep(10))
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(OperationCancelledError):
            await wait_cancellable(inner, token)
        await asyncio.sleep(0)
        assert inner.cancelled()

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test a timeout raises asyncio.TimeoutError."""
        with pytest.raises(asyncio.TimeoutError):
            await wait_cancellable(asyncio.sleep(10), CancelToken(), timeout=0.01)

    @pytest.mark.asyncio
    async def test_already_cancelled(self) -> None:
        """Test an already cancelled token raises immediately."""
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            await wait_cancellable(asyncio.sleep(10), token)

    @pytest.mark.asyncio
    async def test_cancellable_sleep(self) -> None:
        """Test sleeping is interrupted by the token."""
        token = CancelToken()
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, token.cancel)
        started = loop.time()
        with pytest.raises(OperationCancelledError):
            await cancellable_sleep(5.0, token)
        assert loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_sleep_without_token(self) -> None:
        """Test a plain sleep completes."""
        await cancellable_sleep(0.001)
        await cancellable_sleep(0)
