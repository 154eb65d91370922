"""
Retry policy with exponential backoff and jitter.

Delay for attempt n (1-based) is ``min(base * 2^(n-1), max)``, optionally
spread by a uniform jitter of ``±jitter_factor`` of that delay.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from sportsfetch.errors import DEFAULT_RETRYABLE_STATUS_CODES, ValidationError


@dataclass
class RetryConfig:
    """Configuration for retry policy.

    Attributes:
        max_attempts: Total attempts including the first (1 = no retries)
        base_delay_ms: Delay before the first retry in milliseconds
        max_delay_ms: Cap on any single delay in milliseconds
        jitter_enabled: Whether to randomize delays
        jitter_factor: Jitter spread as a fraction of the delay
        retryable_status_codes: HTTP statuses classified as transient
        retry_on_timeout: Whether network timeouts are transient
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    jitter_enabled: bool = True
    jitter_factor: float = 0.1
    retryable_status_codes: frozenset[int] = field(
        default_factory=lambda: DEFAULT_RETRYABLE_STATUS_CODES
    )
    retry_on_timeout: bool = True

    def __post_init__(self) -> None:
        self.retryable_status_codes = frozenset(self.retryable_status_codes)

    def validate(self) -> None:
        if self.max_attempts < 1:
            raise ValidationError(
                "max_attempts must be >= 1", field="max_attempts", actual=self.max_attempts
            )
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValidationError("retry delays must be >= 0", field="base_delay_ms")
        if not 0 <= self.jitter_factor <= 1:
            raise ValidationError(
                "jitter_factor must be within [0, 1]",
                field="jitter_factor",
                actual=self.jitter_factor,
            )

    @classmethod
    def no_retry(cls) -> RetryConfig:
        """Create a config that disables retries."""
        return cls(max_attempts=1)


class RetryPolicy:
    """Backoff calculator and retry budget.

    Example:
        >>> policy = RetryPolicy(RetryConfig(base_delay_ms=100, jitter_enabled=False))
        >>> policy.calculate_delay(3)
        0.4
    """

    def __init__(
        self, config: RetryConfig | None = None, rng: random.Random | None = None
    ) -> None:
        self._config = config or RetryConfig()
        self._config.validate()
        self._rng = rng or random.Random()

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def calculate_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Calculate delay after a failed attempt.

        Args:
            attempt: Attempt number that just failed (1-based)
            retry_after: Optional retry-after hint from the server, in seconds

        Returns:
            Delay in seconds
        """
        exponent = max(0, attempt - 1)
        delay_ms = min(
            self._config.base_delay_ms * (2**exponent), self._config.max_delay_ms
        )

        if self._config.jitter_enabled and self._config.jitter_factor > 0:
            spread = delay_ms * self._config.jitter_factor
            delay_ms = max(0.0, delay_ms + self._rng.uniform(-spread, spread))

        if retry_after is not None and retry_after * 1000 > delay_ms:
            delay_ms = min(retry_after * 1000, self._config.max_delay_ms)

        return delay_ms / 1000.0

    def should_retry(self, retryable: bool, attempt: int) -> bool:
        """Whether a failure on ``attempt`` (1-based) earns another attempt."""
        return retryable and attempt < self._config.max_attempts
