"""Test doubles shared by unit and integration tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from sportsfetch.types import FetchRequest, FetchResponse

if TYPE_CHECKING:
    from sportsfetch.cancel import CancelToken


def response(
    status_code: int = 200,
    content: bytes = b'{"ok": true}',
    headers: dict[str, str] | None = None,
) -> FetchResponse:
    """Build a FetchResponse."""
    return FetchResponse(
        content=content,
        status_code=status_code,
        headers={k.lower(): v for k, v in (headers or {}).items()},
    )


def request(
    operation: str = "GetTeam",
    *params: Any,
    category: str = "team",
    endpoint: str | None = None,
) -> FetchRequest:
    """Build a FetchRequest whose endpoint is derived from its params."""
    params = params or (1,)
    path = endpoint or "/" + "/".join([operation.lower(), *(str(p) for p in params)])
    return FetchRequest(operation, path, category=category, params=params)


class ScriptedTransport:
    """FetchTransport that replays a script of responses and exceptions.

    Endpoints listed in ``routes`` always get their own response; other
    calls consume the script in order and then fall back to ``default``.
    """

    def __init__(
        self,
        *script: FetchResponse | BaseException,
        default: FetchResponse | None = None,
        delay: float = 0.0,
        routes: dict[str, FetchResponse | BaseException] | None = None,
    ) -> None:
        self.script: list[FetchResponse | BaseException] = list(script)
        self.default = default or response()
        self.delay = delay
        self.routes = dict(routes or {})
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def fetch(
        self, endpoint: str, cancel_token: CancelToken | None = None
    ) -> FetchResponse:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        self.calls.append(endpoint)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if endpoint in self.routes:
                item = self.routes[endpoint]
            elif self.script:
                item = self.script.pop(0)
            else:
                item = self.default
        finally:
            self.in_flight -= 1
        if isinstance(item, BaseException):
            raise item
        return replace(item, endpoint=endpoint)

    async def close(self) -> None:
        self.closed = True
