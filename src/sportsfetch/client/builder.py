"""
Builder for fluent client construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sportsfetch.config import ClientSettings

if TYPE_CHECKING:
    from sportsfetch.client.core import SportsDataClient
    from sportsfetch.telemetry import MetricsCollector
    from sportsfetch.transport import FetchTransport


class SportsDataClientBuilder:
    """Builder for creating SportsDataClient instances.

    Section methods take the same field names as ClientSettings; values are
    validated once, in build().

    Example:
        >>> client = (
        ...     SportsDataClientBuilder()
        ...     .base_url("https://sports.core.api.espn.com/v2")
        ...     .rate_limit(max_requests=50, burst_allowance=5)
        ...     .retry(max_attempts=4)
        ...     .cache(category_ttls={"live": 10})
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        """Initialize the builder."""
        self._base: ClientSettings | None = None
        self._overrides: dict[str, dict[str, Any]] = {}
        self._transport: FetchTransport | None = None
        self._metrics: MetricsCollector | None = None

    def _section(self, name: str, **fields: Any) -> SportsDataClientBuilder:
        self._overrides.setdefault(name, {}).update(fields)
        return self

    def settings(self, settings: ClientSettings) -> SportsDataClientBuilder:
        """Start from existing settings instead of the defaults.

        Args:
            settings: Base settings

        Returns:
            Self for chaining
        """
        self._base = settings
        return self

    def base_url(self, url: str) -> SportsDataClientBuilder:
        """Set the upstream base URL.

        Args:
            url: Base URL every endpoint is resolved against

        Returns:
            Self for chaining
        """
        return self._section("transport", base_url=url)

    def timeout(self, seconds: float) -> SportsDataClientBuilder:
        """Set request timeout.

        Args:
            seconds: Timeout in seconds

        Returns:
            Self for chaining
        """
        return self._section("transport", timeout_seconds=seconds)

    def header(self, name: str, value: str) -> SportsDataClientBuilder:
        """Add a header sent with every request."""
        transport = self._overrides.setdefault("transport", {})
        transport.setdefault("headers", {})[name] = value
        return self

    def rate_limit(self, **fields: Any) -> SportsDataClientBuilder:
        return self._section("rate_limit", **fields)

    def retry(self, **fields: Any) -> SportsDataClientBuilder:
        return self._section("retry", **fields)

    def no_retry(self) -> SportsDataClientBuilder:
        return self._section("retry", enabled=False)

    def circuit_breaker(self, **fields: Any) -> SportsDataClientBuilder:
        return self._section("circuit_breaker", **fields)

    def no_circuit_breaker(self) -> SportsDataClientBuilder:
        return self._section("circuit_breaker", enabled=False)

    def cache(self, **fields: Any) -> SportsDataClientBuilder:
        return self._section("cache", **fields)

    def no_cache(self) -> SportsDataClientBuilder:
        return self._section("cache", enabled=False, warming_enabled=False)

    def bulk(self, **fields: Any) -> SportsDataClientBuilder:
        return self._section("bulk", **fields)

    def log_level(self, level: str) -> SportsDataClientBuilder:
        return self._section("logging", level=level)

    def transport(self, transport: FetchTransport) -> SportsDataClientBuilder:
        """Use a custom transport; the caller keeps ownership of it.

        Args:
            transport: Transport implementation

        Returns:
            Self for chaining
        """
        self._transport = transport
        return self

    def metrics(self, collector: MetricsCollector) -> SportsDataClientBuilder:
        self._metrics = collector
        return self

    def build_settings(self) -> ClientSettings:
        """Merge overrides over the base settings and validate.

        Raises:
            ValidationError: If an override is unknown or out of range
        """
        data = (self._base or ClientSettings()).model_dump(mode="json")
        for section, fields in self._overrides.items():
            merged = dict(data.get(section, {}))
            if section == "transport" and "headers" in fields:
                merged["headers"] = {**merged.get("headers", {}), **fields["headers"]}
                fields = {k: v for k, v in fields.items() if k != "headers"}
            merged.update(fields)
            data[section] = merged
        return ClientSettings.from_dict(data)

    def build(self) -> SportsDataClient:
        """Build the SportsDataClient instance.

        Returns:
            Configured SportsDataClient
        """
        from sportsfetch.client.core import SportsDataClient

        return SportsDataClient(
            self.build_settings(),
            transport=self._transport,
            metrics=self._metrics,
        )
