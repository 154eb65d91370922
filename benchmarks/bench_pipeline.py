#!/usr/bin/env python3
"""
Fetch pipeline performance benchmarks.

Measures the overhead each pipeline stage adds on top of a no-op transport.
"""

import asyncio
import time
from typing import Any

from sportsfetch.batch import BulkOptions, BulkOrchestrator
from sportsfetch.cache import CacheConfig, CacheManager
from sportsfetch.client import SportsDataClient
from sportsfetch.config import ClientSettings
from sportsfetch.resilience import (
    RateLimiterConfig,
    ResilientConfig,
    ResilientExecutor,
    SlidingWindowRateLimiter,
)
from sportsfetch.types import FetchRequest, FetchResponse, Success


class NoopTransport:
    """Transport answering every request instantly."""

    async def fetch(self, endpoint: str, cancel_token: Any = None) -> FetchResponse:
        return FetchResponse(content=b"{}", status_code=200, endpoint=endpoint)

    async def close(self) -> None:
        pass


async def noop_attempt() -> Success[bytes]:
    return Success(b"{}")


def result(name: str, iterations: int, elapsed: float) -> dict[str, Any]:
    return {
        "name": name,
        "iterations": iterations,
        "elapsed_seconds": elapsed,
        "throughput_ops": iterations / elapsed,
        "latency_us": (elapsed / iterations) * 1_000_000,
    }


async def benchmark_baseline(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark a bare attempt."""
    start = time.perf_counter()
    for _ in range(iterations):
        await noop_attempt()
    return result("Baseline (no pipeline)", iterations, time.perf_counter() - start)


async def benchmark_rate_limiter(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark acquire() when slots are always free."""
    limiter = SlidingWindowRateLimiter(
        RateLimiterConfig(max_requests=iterations * 2, window_seconds=60)
    )
    start = time.perf_counter()
    for _ in range(iterations):
        await limiter.acquire()
    return result("SlidingWindowRateLimiter (free slots)", iterations, time.perf_counter() - start)


async def benchmark_executor(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark retry + breaker on successful attempts."""
    executor = ResilientExecutor(ResilientConfig.default())
    start = time.perf_counter()
    for _ in range(iterations):
        await executor.execute(noop_attempt)
    return result("ResilientExecutor (default)", iterations, time.perf_counter() - start)


async def benchmark_cache_hits(iterations: int = 10000) -> dict[str, Any]:
    """Benchmark get_or_set on a warm key."""
    cache = CacheManager(CacheConfig())
    await cache.set("sportsfetch:GetSeason:2024", b"{}", ttl=3600)
    start = time.perf_counter()
    for _ in range(iterations):
        await cache.get_or_set("sportsfetch:GetSeason:2024", noop_attempt)
    return result("CacheManager (hits)", iterations, time.perf_counter() - start)


async def benchmark_client_misses(iterations: int = 2000) -> dict[str, Any]:
    """Benchmark the full client path with every fetch a cache miss."""
    settings = ClientSettings.from_dict({"rate_limit": {"max_requests": 0}})
    client = SportsDataClient(settings, transport=NoopTransport())
    requests = [
        FetchRequest("GetGame", f"/games/{i}", category="game", params=(i,))
        for i in range(iterations)
    ]
    start = time.perf_counter()
    for request in requests:
        await client.fetch(request)
    elapsed = time.perf_counter() - start
    await client.close()
    return result("SportsDataClient (misses)", iterations, elapsed)


async def benchmark_bulk(concurrency: int, items: int = 2000) -> dict[str, Any]:
    """Benchmark orchestration overhead."""
    orchestrator = BulkOrchestrator(BulkOptions(batch_size=100, max_concurrency=concurrency))

    async def process(item: int) -> int:
        await asyncio.sleep(0)
        return item

    start = time.perf_counter()
    await orchestrator.process_in_batches(range(items), process)
    return result(f"Bulk ({concurrency} concurrent)", items, time.perf_counter() - start)


async def run_benchmarks() -> None:
    """Run all benchmarks and print results."""
    print("=" * 60)
    print("Fetch Pipeline Benchmarks")
    print("=" * 60)
    print()

    benchmarks = [
        benchmark_baseline,
        benchmark_rate_limiter,
        benchmark_executor,
        benchmark_cache_hits,
        benchmark_client_misses,
    ]

    baseline_latency = 0.0

    for bench in benchmarks:
        outcome = await bench()
        if outcome["name"].startswith("Baseline"):
            baseline_latency = outcome["latency_us"]

        overhead = ""
        if baseline_latency > 0 and not outcome["name"].startswith("Baseline"):
            overhead_us = outcome["latency_us"] - baseline_latency
            overhead = f" (+{overhead_us:.2f}µs)"

        print(f"{outcome['name']}:")
        print(f"  Throughput: {outcome['throughput_ops']:.0f} ops/sec")
        print(f"  Latency: {outcome['latency_us']:.2f} µs/op{overhead}")
        print()

    print("Bulk Orchestration:")
    for concurrency in [1, 5, 20]:
        outcome = await benchmark_bulk(concurrency)
        print(f"  {concurrency} concurrent: {outcome['throughput_ops']:.0f} items/sec")


if __name__ == "__main__":
    asyncio.run(run_benchmarks())
