"""
Integration test helper utilities.

Shared fixtures and payload builders for tests that drive the full pipeline
through HttpTransport against pytest-httpx mocks.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest_asyncio

from sportsfetch.client import SportsDataClient
from sportsfetch.types import FetchRequest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import pytest_httpx

    from sportsfetch.config import ClientSettings

BASE_URL = "https://api.test.local/v2"
NFL = "/sports/football/leagues/nfl"


def season_payload(year: int = 2024) -> dict:
    """Create a mock season document."""
    return {
        "year": year,
        "displayName": f"{year} NFL Season",
        "startDate": f"{year}-08-01T07:00Z",
        "endDate": f"{year + 1}-02-13T07:59Z",
        "types": {"$ref": f"{BASE_URL}{NFL}/seasons/{year}/types"},
    }


def box_score_payload(event_id: int) -> dict:
    """Create a mock box score document."""
    return {
        "id": str(event_id),
        "competitors": [
            {"homeAway": "home", "score": {"value": 24.0}},
            {"homeAway": "away", "score": {"value": 17.0}},
        ],
    }


def season_request(year: int = 2024) -> FetchRequest:
    return FetchRequest(
        "GetSeason", f"{NFL}/seasons/{year}", category="season", params=(year,)
    )


def box_score_request(event_id: int) -> FetchRequest:
    return FetchRequest(
        "GetBoxScore",
        f"{NFL}/events/{event_id}/competitions/{event_id}",
        category="box-score",
        params=(event_id,),
    )


def url_for(request: FetchRequest) -> str:
    return f"{BASE_URL}{request.endpoint}"


def setup_mock_json(
    httpx_mock: pytest_httpx.HTTPXMock,
    request: FetchRequest,
    payload: dict,
    *,
    status_code: int = 200,
    reusable: bool = False,
) -> None:
    """Register a JSON response for a request's URL."""
    httpx_mock.add_response(
        url=url_for(request),
        method="GET",
        status_code=status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json"},
        is_reusable=reusable,
    )


def setup_mock_status(
    httpx_mock: pytest_httpx.HTTPXMock,
    request: FetchRequest,
    status_code: int,
    *,
    retry_after: str | None = None,
) -> None:
    """Register an error status for a request's URL."""
    headers = {"Retry-After": retry_after} if retry_after is not None else None
    httpx_mock.add_response(
        url=url_for(request),
        method="GET",
        status_code=status_code,
        headers=headers,
    )


@pytest_asyncio.fixture
async def client(fast_settings: ClientSettings) -> AsyncIterator[SportsDataClient]:
    """Client whose HttpTransport is built from settings."""
    client = SportsDataClient(fast_settings)
    yield client
    await client.close()
