"""Tests for client settings."""

import pytest

from sportsfetch.batch import BatchDistribution
from sportsfetch.config import ClientSettings
from sportsfetch.errors import ValidationError
from sportsfetch.telemetry import LogLevel
from sportsfetch.transport import HttpTransport


class TestDefaults:
    """Tests for default settings."""

    def test_defaults(self) -> None:
        """Test default values."""
        settings = ClientSettings()
        assert settings.rate_limit.max_requests == 100
        assert settings.rate_limit.burst_allowance == 10
        assert settings.retry.max_attempts == 3
        assert settings.circuit_breaker.failure_threshold == 5
        assert settings.cache.enabled is True
        assert settings.bulk.batch_size == 10
        assert settings.logging.level == LogLevel.INFO

    def test_component_configs(self) -> None:
        """Test sections convert to component configs."""
        settings = ClientSettings()
        limiter = settings.rate_limit.to_config()
        assert limiter.capacity == 110

        resilient = settings.resilient_config()
        assert resilient.retry is not None
        assert resilient.retry.max_attempts == 3
        assert 503 in resilient.retry.retryable_status_codes
        assert resilient.circuit_breaker is not None

        cache = settings.cache.to_config()
        assert cache.ttl_for("season") == 24 * 3600
        assert cache.ttl_for("live") == 30.0
        assert cache.ttl_for("unknown") == 1800.0

    def test_disabled_sections(self) -> None:
        """Test disabled retry and breaker yield no config."""
        settings = ClientSettings.from_dict(
            {"retry": {"enabled": False}, "circuit_breaker": {"enabled": False}}
        )
        resilient = settings.resilient_config()
        assert resilient.retry is None
        assert resilient.circuit_breaker is None

    def test_transport_build(self) -> None:
        """Test the transport section builds an HttpTransport."""
        transport = ClientSettings().transport.build()
        assert isinstance(transport, HttpTransport)


class TestFromDict:
    """Tests for dict validation."""

    def test_overrides(self) -> None:
        """Test nested overrides."""
        settings = ClientSettings.from_dict(
            {
                "rate_limit": {"max_requests": 50, "window_seconds": 30},
                "cache": {"category_ttls": {"LIVE": 5, "odds": 60}},
                "bulk": {"distribution": "batches"},
                "logging": {"level": "debug", "format": "json"},
            }
        )
        assert settings.rate_limit.max_requests == 50
        assert settings.bulk.distribution == BatchDistribution.BATCHES
        assert settings.logging.level == LogLevel.DEBUG

        ttls = settings.cache.to_config()
        assert ttls.ttl_for("live") == 5
        assert ttls.ttl_for("odds") == 60
        assert ttls.ttl_for("team") == 12 * 3600

    @pytest.mark.parametrize(
        ("data", "field"),
        [
            ({"rate_limit": {"max_requests": -1}}, "rate_limit.max_requests"),
            ({"retry": {"max_attempts": 0}}, "retry.max_attempts"),
            ({"bulk": {"batch_size": 0}}, "bulk.batch_size"),
            ({"cache": {"bogus": 1}}, "cache.bogus"),
            ({"unknown_section": {}}, "unknown_section"),
        ],
    )
    def test_invalid_values(self, data: dict, field: str) -> None:
        """Test invalid values raise ValidationError naming the field."""
        with pytest.raises(ValidationError) as exc_info:
            ClientSettings.from_dict(data)
        assert exc_info.value.field == field

    def test_retry_delay_order(self) -> None:
        """Test max delay must not be below base delay."""
        with pytest.raises(ValidationError):
            ClientSettings.from_dict({"retry": {"base_delay_ms": 500, "max_delay_ms": 100}})


class TestFromYaml:
    """Tests for YAML loading."""

    def test_load(self, tmp_path) -> None:
        """Test loading a YAML file."""
        path = tmp_path / "sportsfetch.yaml"
        path.write_text(
            "transport:\n"
            "  base_url: https://example.test/v2\n"
            "rate_limit:\n"
            "  max_requests: 20\n"
            "retry:\n"
            "  retryable_status_codes: [500, 503]\n",
            encoding="utf-8",
        )
        settings = ClientSettings.from_yaml(path)
        assert settings.transport.base_url == "https://example.test/v2"
        assert settings.rate_limit.max_requests == 20
        assert settings.retry.retryable_status_codes == [500, 503]

    def test_empty_file(self, tmp_path) -> None:
        """Test an empty file yields the defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert ClientSettings.from_yaml(path) == ClientSettings()

    def test_invalid_yaml(self, tmp_path) -> None:
        """Test malformed YAML."""
        path = tmp_path / "bad.yaml"
        path.write_text("rate_limit: [unclosed", encoding="utf-8")
        with pytest.raises(ValidationError, match="Invalid YAML"):
            ClientSettings.from_yaml(path)

    def test_non_mapping(self, tmp_path) -> None:
        """Test a top-level list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="must contain a mapping"):
            ClientSettings.from_yaml(path)


class TestFromEnv:
    """Tests for environment overrides."""

    def test_overrides(self) -> None:
        """Test prefixed variables override fields."""
        settings = ClientSettings.from_env(
            environ={
                "SPORTSFETCH_RATE_LIMIT__MAX_REQUESTS": "50",
                "SPORTSFETCH_RETRY__ENABLED": "false",
                "SPORTSFETCH_CACHE__CATEGORY_TTLS": '{"live": 10}',
                "SPORTSFETCH_TRANSPORT__HEADERS": '{"X-Client": "tests"}',
                "UNRELATED": "1",
            }
        )
        assert settings.rate_limit.max_requests == 50
        assert settings.retry.enabled is False
        assert settings.cache.category_ttls == {"live": 10}
        assert settings.transport.headers == {"X-Client": "tests"}

    def test_base_settings_kept(self) -> None:
        """Test overrides apply on top of a base."""
        base = ClientSettings.from_dict({"bulk": {"batch_size": 25}})
        settings = ClientSettings.from_env(
            environ={"SPORTSFETCH_BULK__MAX_CONCURRENCY": "3"}, base=base
        )
        assert settings.bulk.batch_size == 25
        assert settings.bulk.max_concurrency == 3

    def test_unknown_section(self) -> None:
        """Test an unknown section is rejected."""
        with pytest.raises(ValidationError):
            ClientSettings.from_env(environ={"SPORTSFETCH_NOPE__FIELD": "1"})

    def test_invalid_value(self) -> None:
        """Test an invalid value is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            ClientSettings.from_env(environ={"SPORTSFETCH_RATE_LIMIT__MAX_REQUESTS": "many"})
        assert exc_info.value.field == "rate_limit.max_requests"
