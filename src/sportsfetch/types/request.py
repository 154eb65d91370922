"""
Request and response types for the fetch pipeline.

A FetchRequest names one logical upstream call; a FetchResponse is the raw
result the transport hands back before classification.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FetchCategory(str, Enum):
    """Category tag selecting cache TTL behavior."""

    LIVE = "live"
    SEASON = "season"
    TEAM = "team"
    GAME = "game"
    BOX_SCORE = "box-score"
    PLAYER_STATS = "player-stats"
    SCHEDULE = "schedule"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: FetchCategory | str | None) -> FetchCategory | str:
        """Normalize a category tag.

        Known tags become enum members; unknown tags are kept as plain
        strings so callers can configure their own TTL rows.
        """
        if value is None:
            return cls.DEFAULT
        if isinstance(value, cls):
            return value
        try:
            return cls(value.lower())
        except ValueError:
            return value


def category_name(category: FetchCategory | str | None) -> str:
    """Return the string form of a category tag."""
    parsed = FetchCategory.parse(category)
    return parsed.value if isinstance(parsed, FetchCategory) else parsed


@dataclass(frozen=True)
class FetchRequest:
    """One logical upstream fetch.

    Attributes:
        operation: Operation name used to namespace cache keys
        endpoint: Upstream endpoint path (relative to the transport base URL)
        category: Category tag selecting cache TTL
        params: Parameters that distinguish this call within the operation
    """

    operation: str
    endpoint: str
    category: FetchCategory | str = FetchCategory.DEFAULT
    params: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if not self.operation:
            raise ValueError("FetchRequest.operation must not be empty")
        object.__setattr__(self, "category", FetchCategory.parse(self.category))
        if not isinstance(self.params, tuple):
            object.__setattr__(self, "params", tuple(self.params))

    @property
    def category_name(self) -> str:
        return category_name(self.category)

    def cache_key_parts(self) -> tuple[Any, ...]:
        """Return (operation, *params) for key generation."""
        return (self.operation, *self.params)


@dataclass
class FetchResponse:
    """Raw upstream response.

    Attributes:
        content: Response body bytes (never parsed by the pipeline)
        status_code: HTTP status code
        endpoint: Endpoint that produced the response
        headers: Response headers (lower-cased names)
        elapsed: Round-trip time in seconds
    """

    content: bytes
    status_code: int
    endpoint: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())
