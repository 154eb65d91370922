"""Root pytest fixtures for sportsfetch tests."""

from __future__ import annotations

import pytest

from sportsfetch.config import ClientSettings
from sportsfetch.telemetry import MetricsCollector


@pytest.fixture
def metrics() -> MetricsCollector:
    """Fresh metrics collector per test."""
    return MetricsCollector()


@pytest.fixture
def fast_settings() -> ClientSettings:
    """Settings with scaled-down timings so tests run in milliseconds."""
    return ClientSettings.from_dict(
        {
            "transport": {"base_url": "https://api.test.local/v2"},
            "rate_limit": {
                "max_requests": 1000,
                "window_seconds": 1.0,
                "burst_allowance": 0,
                "queue_timeout": 1.0,
            },
            "retry": {
                "max_attempts": 3,
                "base_delay_ms": 1,
                "max_delay_ms": 5,
                "jitter_enabled": False,
            },
            "circuit_breaker": {"failure_threshold": 5, "break_duration": 0.2},
        }
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: tests that sleep for real time windows")
