"""
Client settings.

ClientSettings is the single validated configuration document for a
SportsDataClient. It can be built from a dict, a YAML file or environment
variables, and each section converts to the dataclass config its component
takes.

Environment variables follow ``SPORTSFETCH_<SECTION>__<FIELD>``, e.g.
``SPORTSFETCH_RATE_LIMIT__MAX_REQUESTS=50``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sportsfetch.batch import BatchDistribution, BulkOptions
from sportsfetch.cache import DEFAULT_CATEGORY_TTLS, CacheConfig
from sportsfetch.errors import DEFAULT_RETRYABLE_STATUS_CODES, ValidationError
from sportsfetch.resilience import (
    CircuitBreakerConfig,
    RateLimiterConfig,
    ResilientConfig,
    RetryConfig,
)
from sportsfetch.telemetry.logger import LogLevel, configure_logging

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sportsfetch.transport import HttpTransport

ENV_PREFIX = "SPORTSFETCH_"
ENV_SEPARATOR = "__"

DEFAULT_BASE_URL = "https://sports.core.api.espn.com/v2"


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class TransportSettings(_Section):
    """HTTP transport settings."""

    base_url: str = Field(default=DEFAULT_BASE_URL, description="Upstream base URL")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Request timeout")
    user_agent: str | None = Field(default=None, description="User-Agent override")
    headers: dict[str, str] = Field(
        default_factory=dict, description="Headers sent with every request"
    )

    def build(self) -> HttpTransport:
        """Create an HttpTransport from these settings."""
        from sportsfetch.transport import HttpTransport

        return HttpTransport(
            self.base_url,
            timeout=self.timeout_seconds,
            user_agent=self.user_agent,
            headers=self.headers,
        )


class RateLimitSettings(_Section):
    """Sliding window rate limiter settings."""

    max_requests: int = Field(
        default=100, ge=0, description="Requests per window, 0 = unlimited"
    )
    window_seconds: float = Field(default=60.0, gt=0)
    burst_allowance: int = Field(default=10, ge=0)
    queue_timeout: float = Field(
        default=5.0, ge=0, description="Max seconds to wait for a slot"
    )

    def to_config(self) -> RateLimiterConfig:
        return RateLimiterConfig(
            max_requests=self.max_requests,
            window_seconds=self.window_seconds,
            burst_allowance=self.burst_allowance,
            queue_timeout=self.queue_timeout,
        )


class RetrySettings(_Section):
    """Retry policy settings."""

    enabled: bool = True
    max_attempts: int = Field(
        default=3, ge=1, description="Total attempts including the first"
    )
    base_delay_ms: int = Field(default=1000, ge=0)
    max_delay_ms: int = Field(default=30000, ge=0)
    jitter_enabled: bool = True
    jitter_factor: float = Field(default=0.1, ge=0, le=1)
    retryable_status_codes: list[int] = Field(
        default_factory=lambda: sorted(DEFAULT_RETRYABLE_STATUS_CODES)
    )
    retry_on_timeout: bool = True

    @model_validator(mode="after")
    def _check_delays(self) -> RetrySettings:
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")
        return self

    def to_config(self) -> RetryConfig | None:
        """Return the retry config, or None when retries are disabled."""
        if not self.enabled:
            return None
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            jitter_enabled=self.jitter_enabled,
            jitter_factor=self.jitter_factor,
            retryable_status_codes=frozenset(self.retryable_status_codes),
            retry_on_timeout=self.retry_on_timeout,
        )


class CircuitBreakerSettings(_Section):
    """Circuit breaker settings."""

    enabled: bool = True
    failure_threshold: int = Field(default=5, ge=1)
    break_duration: float = Field(default=60.0, gt=0, description="Seconds to stay open")

    def to_config(self) -> CircuitBreakerConfig | None:
        """Return the breaker config, or None when the breaker is disabled."""
        if not self.enabled:
            return None
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            break_duration=self.break_duration,
        )


class CacheSettings(_Section):
    """Response cache settings."""

    enabled: bool = True
    default_ttl: float = Field(default=1800.0, gt=0, description="Seconds")
    category_ttls: dict[str, float] = Field(
        default_factory=dict,
        description="Per-category TTL overrides in seconds, merged over the defaults",
    )
    warming_enabled: bool = True
    max_size: int = Field(default=1000, ge=0)
    key_prefix: str = Field(default="sportsfetch", min_length=1)

    def to_config(self) -> CacheConfig:
        ttls = dict(DEFAULT_CATEGORY_TTLS)
        ttls.update({k.lower(): v for k, v in self.category_ttls.items()})
        return CacheConfig(
            enabled=self.enabled,
            default_ttl=self.default_ttl,
            category_ttls=ttls,
            warming_enabled=self.warming_enabled,
            max_size=self.max_size,
            key_prefix=self.key_prefix,
        )


class BulkSettings(_Section):
    """Bulk orchestration settings."""

    batch_size: int = Field(default=10, gt=0)
    max_concurrency: int = Field(default=5, gt=0)
    continue_on_error: bool = True
    distribution: BatchDistribution = BatchDistribution.ITEMS
    progress_interval: float = Field(default=0.0, ge=0)

    def to_config(self) -> BulkOptions:
        return BulkOptions(
            batch_size=self.batch_size,
            max_concurrency=self.max_concurrency,
            continue_on_error=self.continue_on_error,
            distribution=self.distribution,
            progress_interval=self.progress_interval,
        )


class LoggingSettings(_Section):
    """Logging output settings."""

    level: LogLevel = LogLevel.INFO
    format: Literal["text", "json"] = "text"
    configure: bool = Field(
        default=False, description="Attach a handler when the client starts"
    )

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    def apply(self) -> None:
        configure_logging(level=self.level, format=self.format)


class ClientSettings(BaseModel):
    """Complete client configuration.

    Example:
        >>> settings = ClientSettings.from_yaml("sportsfetch.yaml")
        >>> settings.rate_limit.max_requests
        100
    """

    model_config = ConfigDict(extra="forbid")

    transport: TransportSettings = Field(default_factory=TransportSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    bulk: BulkSettings = Field(default_factory=BulkSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def resilient_config(self) -> ResilientConfig:
        return ResilientConfig(
            retry=self.retry.to_config(),
            circuit_breaker=self.circuit_breaker.to_config(),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ClientSettings:
        """Validate a settings mapping.

        Raises:
            ValidationError: If a section or field is unknown or out of range
        """
        try:
            return cls.model_validate(dict(data or {}))
        except pydantic.ValidationError as e:
            raise _convert_error(e) from e

    @classmethod
    def from_yaml(cls, path: str | Path) -> ClientSettings:
        """Load settings from a YAML file.

        An empty file yields the defaults.

        Raises:
            ValidationError: If the file is not valid YAML or fails validation
        """
        path = Path(path)
        content = path.read_text(encoding="utf-8")
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError(
                f"Settings file {path} must contain a mapping",
                actual=type(data).__name__,
            )
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        *,
        environ: Mapping[str, str] | None = None,
        base: ClientSettings | None = None,
    ) -> ClientSettings:
        """Apply ``<prefix><SECTION>__<FIELD>`` environment overrides.

        Args:
            prefix: Variable name prefix
            environ: Mapping to read instead of os.environ
            base: Settings to override (defaults when omitted)

        Raises:
            ValidationError: If a variable names an unknown field or holds
                an invalid value
        """
        environ = os.environ if environ is None else environ
        data = (base or cls()).model_dump(mode="json")

        for name, raw in environ.items():
            if not name.upper().startswith(prefix.upper()):
                continue
            remainder = name[len(prefix) :].lower()
            section, sep, field_name = remainder.partition(ENV_SEPARATOR)
            if not sep or not field_name:
                continue
            if section not in data:
                raise ValidationError(
                    f"Unknown settings section in {name}", field=section
                )
            data[section][field_name] = _parse_env_value(raw)

        return cls.from_dict(data)


def _parse_env_value(raw: str) -> Any:
    """Decode JSON objects and lists; leave scalars for pydantic to coerce."""
    stripped = raw.strip()
    if stripped[:1] in ("{", "["):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            return raw
    return raw


def _convert_error(error: pydantic.ValidationError) -> ValidationError:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return ValidationError(
        f"Invalid settings: {location}: {first.get('msg')}",
        field=location or None,
        actual=first.get("input"),
    )
