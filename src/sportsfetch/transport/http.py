"""HTTP 传输层：基于 httpx 的异步 GET 客户端，所有状态码均以 FetchResponse 返回。

HTTP transport using httpx for async requests.

Provides:
- A FetchTransport protocol the client depends on
- Configurable timeouts and default headers
- Cancellation before and during the round trip
"""

from __future__ import annotations

import importlib.util
import os
import time
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from sportsfetch.cancel import wait_cancellable
from sportsfetch.errors import TransportError
from sportsfetch.telemetry.logger import get_logger
from sportsfetch.types import FetchResponse

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sportsfetch.cancel import CancelToken

logger = get_logger(__name__)

# Default timeouts
_DEFAULT_TIMEOUT = 30.0
_DEFAULT_CONNECT_TIMEOUT = 10.0

_UA_VERSION: str | None = None


def _http2_enabled() -> bool:
    """Enable HTTP/2 only when optional dependency is present."""
    return importlib.util.find_spec("h2") is not None


def _trust_env_enabled() -> bool:
    """Use env proxy settings only when explicitly enabled."""
    return os.getenv("SPORTSFETCH_HTTP_TRUST_ENV", "0") == "1"


def _get_ua_version() -> str:
    """Get package version for User-Agent (cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        try:
            _UA_VERSION = version("sportsfetch")
        except PackageNotFoundError:
            _UA_VERSION = "0.1.0"
    return _UA_VERSION


def default_user_agent() -> str:
    return f"sportsfetch/{_get_ua_version()}"


@runtime_checkable
class FetchTransport(Protocol):
    """Anything that can perform one upstream GET."""

    async def fetch(
        self, endpoint: str, cancel_token: CancelToken | None = None
    ) -> FetchResponse:
        """Fetch ``endpoint`` and return the raw response.

        Non-2xx statuses are returned, not raised; network failures raise
        TransportError.
        """
        ...

    async def close(self) -> None: ...


class HttpTransport:
    """HTTP transport for the sports data API.

    Example:
        >>> async with HttpTransport("https://api.example.com/v3/nba") as transport:
        ...     response = await transport.fetch("/scores/json/CurrentSeason")
        ...     print(response.status_code, len(response.content))
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        user_agent: str | None = None,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            base_url: Base URL every endpoint is resolved against
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            headers: Default headers sent with every request
            client: Pre-built httpx client (closed by the caller)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout if timeout is not None else _DEFAULT_TIMEOUT
        self._headers = {
            "Accept": "application/json",
            "User-Agent": user_agent or default_user_agent(),
            **dict(headers or {}),
        }
        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=_DEFAULT_CONNECT_TIMEOUT),
                headers=self._headers,
                http2=_http2_enabled(),
                trust_env=_trust_env_enabled(),
            )
        return self._client

    def _url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self._base_url}/{endpoint.lstrip('/')}"

    async def fetch(
        self, endpoint: str, cancel_token: CancelToken | None = None
    ) -> FetchResponse:
        """GET ``endpoint``.

        Args:
            endpoint: Path relative to the base URL, or an absolute URL
            cancel_token: Token checked before sending and while in flight

        Returns:
            FetchResponse for any HTTP status

        Raises:
            TransportError: On network errors and timeouts
            OperationCancelledError: If the token is cancelled
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        client = self._get_client()
        url = self._url_for(endpoint)
        headers = None if self._owns_client else self._headers
        started = time.monotonic()

        try:
            response = await wait_cancellable(
                client.get(url, headers=headers), cancel_token
            )
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Request timed out: {e}",
                url=url,
                is_timeout=True,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"HTTP error: {e}",
                url=url,
                cause=e,
            ) from e

        elapsed = time.monotonic() - started
        logger.debug(
            "Upstream response",
            endpoint=endpoint,
            status_code=response.status_code,
            bytes=len(response.content),
            elapsed=round(elapsed, 4),
        )
        return FetchResponse(
            content=response.content,
            status_code=response.status_code,
            endpoint=endpoint,
            headers={k.lower(): v for k, v in response.headers.items()},
            elapsed=elapsed,
        )

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"HttpTransport(base_url={self._base_url!r}, timeout={self._timeout})"
