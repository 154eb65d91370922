"""Tests for client module."""

import asyncio

import pytest

from sportsfetch.batch import BulkProgress
from sportsfetch.cancel import CancelToken
from sportsfetch.client import SportsDataClient, SportsDataClientBuilder
from sportsfetch.config import ClientSettings
from sportsfetch.errors import (
    CircuitOpenError,
    ErrorClass,
    OperationCancelledError,
    PermanentUpstreamError,
    RateLimitTimeout,
    TransientUpstreamError,
    TransportError,
    ValidationError,
)
from sportsfetch.telemetry import HealthStatus
from tests.helpers import ScriptedTransport, request, response


def make_client(settings: ClientSettings, transport: ScriptedTransport) -> SportsDataClient:
    return SportsDataClient(settings, transport=transport)


class TestFetch:
    """Tests for single fetches."""

    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, fast_settings: ClientSettings) -> None:
        """Test the second fetch is served from the cache."""
        transport = ScriptedTransport(default=response(content=b'{"id": 1}'))
        async with make_client(fast_settings, transport) as client:
            first = await client.fetch(request("GetTeam", 1))
            second = await client.fetch(request("GetTeam", 1))

            assert first == second == b'{"id": 1}'
            assert transport.call_count == 1
            assert transport.calls == ["/getteam/1"]
            assert client.cache.stats.hits == 1
            assert client.metrics.cache_hit_rate("GetTeam") == 0.5

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(
        self, fast_settings: ClientSettings
    ) -> None:
        """Test concurrent fetches of the same key reach the upstream once."""
        transport = ScriptedTransport(delay=0.02)
        async with make_client(fast_settings, transport) as client:
            results = await asyncio.gather(
                *(client.fetch(request("GetSeason", 2024)) for _ in range(5))
            )
        assert len(set(results)) == 1
        assert transport.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self, fast_settings: ClientSettings) -> None:
        """Test 503s are retried until a success."""
        transport = ScriptedTransport(response(503), response(503))
        async with make_client(fast_settings, transport) as client:
            body = await client.fetch(request())

            assert body == b'{"ok": true}'
            assert transport.call_count == 3
            snapshot = client.metrics.get_snapshot()
            assert snapshot.total_requests == 3
            assert snapshot.failed_requests == 2
            assert snapshot.retry_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, fast_settings: ClientSettings) -> None:
        """Test the last transient failure surfaces after max_attempts."""
        transport = ScriptedTransport(default=response(503))
        async with make_client(fast_settings, transport) as client:
            with pytest.raises(TransientUpstreamError) as exc_info:
                await client.fetch(request())

        assert transport.call_count == 3
        assert exc_info.value.status_code == 503
        assert exc_info.value.context.attempt == 3

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried_or_cached(
        self, fast_settings: ClientSettings
    ) -> None:
        """Test a 404 fails at once and a later fetch tries again."""
        transport = ScriptedTransport(response(404))
        async with make_client(fast_settings, transport) as client:
            with pytest.raises(PermanentUpstreamError) as exc_info:
                await client.fetch(request())
            assert exc_info.value.error_class == ErrorClass.NOT_FOUND
            assert transport.call_count == 1

            await client.fetch(request())
            assert transport.call_count == 2

    @pytest.mark.asyncio
    async def test_empty_body_is_permanent(self, fast_settings: ClientSettings) -> None:
        """Test a 200 with no body is rejected."""
        transport = ScriptedTransport(default=response(200, b""))
        async with make_client(fast_settings, transport) as client:
            with pytest.raises(PermanentUpstreamError) as exc_info:
                await client.fetch(request())
        assert exc_info.value.error_class == ErrorClass.MALFORMED_RESPONSE
        assert transport.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_retried(self, fast_settings: ClientSettings) -> None:
        """Test transport timeouts are retried."""
        transport = ScriptedTransport(TransportError("read timed out", is_timeout=True))
        async with make_client(fast_settings, transport) as client:
            assert await client.fetch(request()) == b'{"ok": true}'
        assert transport.call_count == 2

    @pytest.mark.asyncio
    async def test_timeout_not_retried_when_disabled(
        self, fast_settings: ClientSettings
    ) -> None:
        """Test retry_on_timeout=False makes timeouts permanent."""
        transport = ScriptedTransport(TransportError("read timed out", is_timeout=True))
        client = (
            SportsDataClient.builder()
            .settings(fast_settings)
            .retry(retry_on_timeout=False)
            .transport(transport)
            .build()
        )
        async with client:
            with pytest.raises(PermanentUpstreamError):
                await client.fetch(request())
        assert transport.call_count == 1

    @pytest.mark.asyncio
    async def test_ttl_override(self, fast_settings: ClientSettings) -> None:
        """Test a per-call TTL."""
        transport = ScriptedTransport()
        async with make_client(fast_settings, transport) as client:
            await client.fetch(request(), ttl=0.05)
            await asyncio.sleep(0.1)
            await client.fetch(request())
        assert transport.call_count == 2

    @pytest.mark.asyncio
    async def test_cancelled_token(self, fast_settings: ClientSettings) -> None:
        """Test a cancelled token aborts before the upstream is called."""
        transport = ScriptedTransport()
        token = CancelToken()
        token.cancel()
        async with make_client(fast_settings, transport) as client:
            with pytest.raises(OperationCancelledError):
                await client.fetch(request(), cancel_token=token)
        assert transport.call_count == 0


class TestResilience:
    """Tests for circuit breaking and rate limiting through the client."""

    @pytest.mark.asyncio
    async def test_circuit_opens_and_recovers(self, fast_settings: ClientSettings) -> None:
        """Test consecutive failures open the circuit until the break elapses."""
        transport = ScriptedTransport(default=response(503))
        client = (
            SportsDataClient.builder()
            .settings(fast_settings)
            .no_retry()
            .circuit_breaker(failure_threshold=2, break_duration=0.2)
            .transport(transport)
            .build()
        )
        async with client:
            for _ in range(2):
                with pytest.raises(TransientUpstreamError):
                    await client.fetch(request())

            with pytest.raises(CircuitOpenError):
                await client.fetch(request())
            assert transport.call_count == 2
            assert client.get_status().circuit_breaker.is_open
            assert client.metrics.get_snapshot().circuit_breaker_opens == 1

            await asyncio.sleep(0.25)
            transport.default = response()
            assert await client.fetch(request()) == b'{"ok": true}'
            assert client.get_status().circuit_breaker.is_closed

    @pytest.mark.asyncio
    async def test_rate_limit_timeout(self, fast_settings: ClientSettings) -> None:
        """Test a saturated limiter raises without touching the breaker."""
        transport = ScriptedTransport()
        client = (
            SportsDataClient.builder()
            .settings(fast_settings)
            .rate_limit(max_requests=1, window_seconds=10, queue_timeout=0.05)
            .circuit_breaker(failure_threshold=1)
            .transport(transport)
            .build()
        )
        async with client:
            await client.fetch(request("GetTeam", 1))
            with pytest.raises(RateLimitTimeout):
                await client.fetch(request("GetTeam", 2))

            assert transport.call_count == 1
            assert client.get_status().circuit_breaker.is_closed
            assert client.metrics.get_snapshot().rate_limit_timeouts == 1


class TestBulk:
    """Tests for fetch_many and warm."""

    @pytest.mark.asyncio
    async def test_fetch_many(self, fast_settings: ClientSettings) -> None:
        """Test bulk fetching with batches and progress."""
        transport = ScriptedTransport()
        events: list[BulkProgress] = []
        async with make_client(fast_settings, transport) as client:
            result = await client.fetch_many(
                [request("GetGame", i, category="game") for i in range(25)],
                on_progress=events.append,
            )

        assert result.success_count == 25
        assert result.batch_sizes == [10, 10, 5]
        assert transport.call_count == 25
        assert events[-1].is_completed
        assert events[-1].operation_type == "fetch_many"

    @pytest.mark.asyncio
    async def test_fetch_many_collects_failures(self, fast_settings: ClientSettings) -> None:
        """Test one failing item does not stop the others."""
        transport = ScriptedTransport(routes={"/getgame/3": response(404)})
        async with make_client(fast_settings, transport) as client:
            result = await client.fetch_many(
                [request("GetGame", i) for i in range(6)], batch_size=2
            )

        assert result.success_count == 5
        assert result.failure_count == 1
        assert result.batch_sizes == [2, 2, 2]
        error = result.errors[0]
        assert error.item == request("GetGame", 3)
        assert isinstance(error.cause, PermanentUpstreamError)

    @pytest.mark.asyncio
    async def test_fetch_many_fail_fast(self, fast_settings: ClientSettings) -> None:
        """Test continue_on_error=False raises the item's error."""
        transport = ScriptedTransport(routes={"/getgame/0": response(404)})
        async with make_client(fast_settings, transport) as client:
            with pytest.raises(PermanentUpstreamError):
                await client.fetch_many(
                    [request("GetGame", i) for i in range(4)],
                    continue_on_error=False,
                    max_concurrency=1,
                )

    @pytest.mark.asyncio
    async def test_fetch_many_cancel(self, fast_settings: ClientSettings) -> None:
        """Test cancelling a bulk fetch."""
        transport = ScriptedTransport(delay=0.05)
        token = CancelToken()
        async with make_client(fast_settings, transport) as client:
            asyncio.get_running_loop().call_later(0.12, token.cancel)
            with pytest.raises(OperationCancelledError):
                await client.fetch_many(
                    [request("GetGame", i) for i in range(20)],
                    cancel_token=token,
                    max_concurrency=1,
                )
        assert transport.call_count < 20

    @pytest.mark.asyncio
    async def test_warm(self, fast_settings: ClientSettings) -> None:
        """Test warming populates the cache."""
        transport = ScriptedTransport(routes={"/getgame/9": response(404)})
        requests = [
            request("GetTeam", 1),
            request("GetTeam", 2),
            request("GetGame", 9, category="game"),
        ]
        async with make_client(fast_settings, transport) as client:
            result = await client.warm(requests)
            assert sorted(result.warmed) == [
                "sportsfetch:GetTeam:1",
                "sportsfetch:GetTeam:2",
            ]
            assert list(result.failed) == ["sportsfetch:GetGame:9"]

            again = await client.warm(requests[:1])
            assert again.already_cached == ["sportsfetch:GetTeam:1"]

            await client.fetch(request("GetTeam", 2))
            assert transport.call_count == 3

    @pytest.mark.asyncio
    async def test_warm_disabled(self, fast_settings: ClientSettings) -> None:
        """Test warming is skipped when disabled."""
        transport = ScriptedTransport()
        client = (
            SportsDataClient.builder()
            .settings(fast_settings)
            .no_cache()
            .transport(transport)
            .build()
        )
        async with client:
            result = await client.warm([request()])
        assert result.enabled is False
        assert transport.call_count == 0


class TestCacheControl:
    """Tests for invalidation and status."""

    @pytest.mark.asyncio
    async def test_invalidate(self, fast_settings: ClientSettings) -> None:
        """Test pattern invalidation forces a refetch."""
        transport = ScriptedTransport()
        async with make_client(fast_settings, transport) as client:
            await client.fetch(request("GetTeam", 1))
            await client.fetch(request("GetTeam", 2))
            await client.fetch(request("GetGame", 1, category="game"))

            assert await client.invalidate(":GetTeam:") == 2

            await client.fetch(request("GetTeam", 1))
            await client.fetch(request("GetGame", 1, category="game"))
            assert transport.call_count == 4

    @pytest.mark.asyncio
    async def test_get_status(self, fast_settings: ClientSettings) -> None:
        """Test the status snapshot."""
        transport = ScriptedTransport()
        async with make_client(fast_settings, transport) as client:
            await client.fetch(request())
            status = client.get_status()

        assert status.rate_limiter.total_issued == 1
        assert status.rate_limiter.capacity == 1000
        assert status.circuit_breaker.is_closed
        assert status.cache["misses"] == 1
        assert status.is_healthy
        assert status.to_dict()["circuit_breaker"]["state"] == "closed"

    def test_cache_key(self, fast_settings: ClientSettings) -> None:
        """Test keys are namespaced by operation."""
        client = make_client(fast_settings, ScriptedTransport())
        assert client.cache_key(request("GetSeason", 2024)) == "sportsfetch:GetSeason:2024"


class TestHealth:
    """Tests for check_health."""

    @pytest.mark.asyncio
    async def test_healthy(self, fast_settings: ClientSettings) -> None:
        """Test a reachable upstream."""
        async with make_client(fast_settings, ScriptedTransport()) as client:
            result = await client.check_health()
        assert result.status == HealthStatus.HEALTHY
        assert result.details["status_code"] == 200

    @pytest.mark.asyncio
    async def test_empty_body_degraded(self, fast_settings: ClientSettings) -> None:
        """Test an empty probe body."""
        transport = ScriptedTransport(response(200, b""))
        async with make_client(fast_settings, transport) as client:
            result = await client.check_health()
        assert result.status == HealthStatus.DEGRADED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome", [response(500), TransportError("connection refused")]
    )
    async def test_unhealthy(self, fast_settings: ClientSettings, outcome) -> None:
        """Test upstream errors."""
        async with make_client(fast_settings, ScriptedTransport(outcome)) as client:
            result = await client.check_health()
        assert result.status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_open_circuit_unhealthy(self, fast_settings: ClientSettings) -> None:
        """Test an open circuit short-circuits the probe."""
        transport = ScriptedTransport(default=response(503))
        client = (
            SportsDataClient.builder()
            .settings(fast_settings)
            .no_retry()
            .circuit_breaker(failure_threshold=1)
            .transport(transport)
            .build()
        )
        async with client:
            with pytest.raises(TransientUpstreamError):
                await client.fetch(request())
            result = await client.check_health()
        assert result.status == HealthStatus.UNHEALTHY
        assert transport.call_count == 1

    @pytest.mark.asyncio
    async def test_saturated_limiter_degraded(self, fast_settings: ClientSettings) -> None:
        """Test a probe that cannot get a rate limit slot."""
        client = (
            SportsDataClient.builder()
            .settings(fast_settings)
            .rate_limit(max_requests=1, window_seconds=10, queue_timeout=0.02)
            .transport(ScriptedTransport())
            .build()
        )
        async with client:
            await client.fetch(request())
            result = await client.check_health()
        assert result.status == HealthStatus.DEGRADED


class TestLifecycle:
    """Tests for client construction and shutdown."""

    @pytest.mark.asyncio
    async def test_close_keeps_caller_transport(self, fast_settings: ClientSettings) -> None:
        """Test a caller-provided transport is not closed."""
        transport = ScriptedTransport()
        client = make_client(fast_settings, transport)
        await client.close()
        await client.close()
        assert transport.closed is False

    @pytest.mark.asyncio
    async def test_owned_transport(self, fast_settings: ClientSettings) -> None:
        """Test the transport built from settings."""
        client = SportsDataClient(fast_settings)
        assert "api.test.local" in repr(client)
        await client.close()

    def test_defaults(self) -> None:
        """Test a client with default settings."""
        client = SportsDataClient()
        assert client.settings == ClientSettings()
        assert client.orchestrator.options.batch_size == 10


class TestBuilder:
    """Tests for SportsDataClientBuilder."""

    def test_build_settings(self) -> None:
        """Test overrides are merged over the defaults."""
        settings = (
            SportsDataClientBuilder()
            .base_url("https://example.test/v2")
            .timeout(5)
            .header("X-Client", "tests")
            .header("X-Trace", "1")
            .rate_limit(max_requests=20)
            .retry(max_attempts=5)
            .bulk(max_concurrency=2)
            .log_level("debug")
            .build_settings()
        )
        assert settings.transport.base_url == "https://example.test/v2"
        assert settings.transport.timeout_seconds == 5
        assert settings.transport.headers == {"X-Client": "tests", "X-Trace": "1"}
        assert settings.rate_limit.max_requests == 20
        assert settings.rate_limit.window_seconds == 60.0
        assert settings.retry.max_attempts == 5
        assert settings.bulk.max_concurrency == 2

    def test_base_settings(self, fast_settings: ClientSettings) -> None:
        """Test starting from existing settings."""
        settings = SportsDataClientBuilder().settings(fast_settings).no_circuit_breaker()
        built = settings.build_settings()
        assert built.transport.base_url == "https://api.test.local/v2"
        assert built.circuit_breaker.enabled is False

    def test_invalid_override(self) -> None:
        """Test invalid overrides fail at build time."""
        builder = SportsDataClientBuilder().rate_limit(max_requests=-5)
        with pytest.raises(ValidationError):
            builder.build()

    def test_build_client(self) -> None:
        """Test build() wires the transport and metrics."""
        transport = ScriptedTransport()
        client = SportsDataClient.builder().transport(transport).build()
        assert client.settings == ClientSettings()
        assert "ScriptedTransport" in repr(client)
