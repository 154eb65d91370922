"""
Telemetry module for sportsfetch.

Provides:
- Structured logging with sensitive data masking
- Metrics collection (latency, cache hit rate, resilience counters)
- Health check result types
"""

from sportsfetch.telemetry.health import (
    HealthCheckResult,
    HealthStatus,
    aggregate_status,
)
from sportsfetch.telemetry.logger import (
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    SportsFetchLogger,
    TextFormatter,
    clear_log_context,
    configure_logging,
    get_log_context,
    get_logger,
    log_context,
    set_log_context,
)
from sportsfetch.telemetry.metrics import (
    BulkOperationMetrics,
    MetricLabels,
    MetricsCollector,
    MetricSnapshot,
)

__all__ = [
    # Logger
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataMasker",
    "SportsFetchLogger",
    "TextFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "get_logger",
    "log_context",
    "set_log_context",
    # Metrics
    "BulkOperationMetrics",
    "MetricLabels",
    "MetricSnapshot",
    "MetricsCollector",
    # Health
    "HealthCheckResult",
    "HealthStatus",
    "aggregate_status",
]
