#!/usr/bin/env python3
"""
Bulk fetch example.

This example demonstrates the pipeline against a public sports API:
- Sliding window rate limiting
- Retry with exponential backoff and a circuit breaker
- Per-category cache TTLs and cache warming
- Bulk fetching with progress reporting and cancellation

Usage:
    python examples/bulk_box_scores.py
    SPORTSFETCH_RATE_LIMIT__MAX_REQUESTS=20 python examples/bulk_box_scores.py
"""

import asyncio
import json

from sportsfetch import (
    BulkProgress,
    CancelToken,
    ClientSettings,
    FetchRequest,
    OperationCancelledError,
    SportsDataClient,
)

NFL = "/sports/football/leagues/nfl"


def season(year: int) -> FetchRequest:
    return FetchRequest("GetSeason", f"{NFL}/seasons/{year}", category="season", params=(year,))


def team(team_id: int) -> FetchRequest:
    return FetchRequest("GetTeam", f"{NFL}/teams/{team_id}", category="team", params=(team_id,))


def print_progress(progress: BulkProgress) -> None:
    marker = "done" if progress.is_completed else f"eta {progress.estimated_time_remaining:.1f}s"
    print(
        f"  [{progress.percentage_complete:5.1f}%] "
        f"{progress.completed_items} ok, {progress.failed_items} failed ({marker})"
    )


async def single_fetch(client: SportsDataClient) -> None:
    """Fetch one document twice; the second read is a cache hit."""
    print("Fetching the 2024 season...")
    body = await client.fetch(season(2024))
    print(f"  {json.loads(body).get('displayName')}")

    await client.fetch(season(2024))
    print(f"  Cache stats: {client.cache.stats.to_dict()}")
    print()


async def bulk_fetch(client: SportsDataClient) -> None:
    """Fetch every team with bounded concurrency."""
    print("Fetching 32 teams, 4 at a time...")
    result = await client.fetch_many(
        [team(i) for i in range(1, 33)],
        batch_size=8,
        max_concurrency=4,
        on_progress=print_progress,
        operation_type="teams",
    )
    print(f"  Fetched {result.success_count} teams in {result.total_time:.2f}s")
    for error in result.errors:
        print(f"  Failed: {error.message}")
    print()


async def cancelled_bulk_fetch(client: SportsDataClient) -> None:
    """Abort a bulk fetch part way through."""
    print("Starting a bulk fetch and cancelling it after 1 second...")
    token = CancelToken()
    asyncio.get_running_loop().call_later(1.0, token.cancel)
    try:
        await client.fetch_many(
            [season(year) for year in range(1970, 2024)],
            max_concurrency=2,
            cancel_token=token,
        )
    except OperationCancelledError as e:
        print(f"  Stopped: {e}")
    print()


async def main() -> None:
    """Run the examples."""
    settings = ClientSettings.from_env(
        base=ClientSettings.from_dict(
            {
                "rate_limit": {"max_requests": 50, "window_seconds": 60},
                "logging": {"level": "info", "configure": True},
            }
        )
    )

    async with SportsDataClient(settings) as client:
        await single_fetch(client)
        await bulk_fetch(client)
        await cancelled_bulk_fetch(client)

        health = await client.check_health()
        print(f"Health: {health.status.value} ({health.message})")
        print(f"Status: {client.get_status().to_dict()}")


if __name__ == "__main__":
    asyncio.run(main())
