"""
Structured logging for sportsfetch.

Provides context-aware logging with sensitive data masking. All loggers live
under the ``sportsfetch`` namespace; ``configure_logging`` attaches a single
handler to that namespace.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

ROOT_LOGGER_NAME = "sportsfetch"

_log_context: ContextVar[dict[str, Any] | None] = ContextVar(
    "sportsfetch_log_context", default=None
)


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_logging_level(self) -> int:
        """Convert to standard logging level."""
        return getattr(logging, self.value)


@dataclass
class LogContext:
    """Operation-scoped logging context.

    Attributes:
        operation_id: Bulk operation or request identifier
        operation: Logical operation name
        endpoint: Upstream endpoint
        category: Fetch category tag
        extra: Additional context fields
    """

    operation_id: str | None = None
    operation: str | None = None
    endpoint: str | None = None
    category: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {
            k: v
            for k, v in (
                ("operation_id", self.operation_id),
                ("operation", self.operation),
                ("endpoint", self.endpoint),
                ("category", self.category),
            )
            if v
        }
        result.update(self.extra)
        return result

    def with_extra(self, **kwargs: Any) -> LogContext:
        """Create new context with additional fields."""
        return LogContext(
            operation_id=self.operation_id,
            operation=self.operation,
            endpoint=self.endpoint,
            category=self.category,
            extra={**self.extra, **kwargs},
        )


_CONTEXT_FIELDS = ("operation_id", "operation", "endpoint", "category")


def get_log_context() -> LogContext:
    """Get current logging context."""
    data = _log_context.get()
    if not data:
        return LogContext()
    known = {k: data[k] for k in _CONTEXT_FIELDS if k in data}
    extra = {k: v for k, v in data.items() if k not in _CONTEXT_FIELDS}
    return LogContext(**known, extra=extra)


def set_log_context(context: LogContext) -> None:
    """Set logging context for current async context."""
    _log_context.set(context.to_dict())


def clear_log_context() -> None:
    """Clear logging context."""
    _log_context.set(None)


@contextmanager
def log_context(**fields: Any) -> Iterator[LogContext]:
    """Temporarily extend the logging context.

    Tasks created inside the block inherit the fields.
    """
    current = _log_context.get() or {}
    added = {k: v for k, v in fields.items() if v is not None}
    token = _log_context.set({**current, **added})
    try:
        yield get_log_context()
    finally:
        _log_context.reset(token)


class SensitiveDataMasker:
    """Masks credentials that upstream URLs and headers may carry."""

    DEFAULT_PATTERNS: ClassVar[list[tuple[str, str]]] = [
        (r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)([^\"'\s&]+)", r"\1***REDACTED***"),
        (r"([?&](?:key|token|access_token|apikey)=)([^&\s]+)", r"\1***REDACTED***"),
        (r"(Bearer\s+)([^\s]+)", r"\1***REDACTED***"),
        (r"(Authorization[\"']?\s*[:=]\s*[\"']?)([^\"'\s]+)", r"\1***REDACTED***"),
        (r"(Cookie[\"']?\s*[:=]\s*[\"']?)([^\"'\n]+)", r"\1***REDACTED***"),
    ]

    SENSITIVE_KEYS: ClassVar[tuple[str, ...]] = (
        "api_key",
        "apikey",
        "token",
        "secret",
        "password",
        "auth",
        "cookie",
    )

    def __init__(self, patterns: list[tuple[str, str]] | None = None) -> None:
        self._patterns = [
            (re.compile(p, re.IGNORECASE), r)
            for p, r in (patterns or self.DEFAULT_PATTERNS)
        ]

    def mask(self, text: str) -> str:
        """Mask sensitive data in text."""
        result = text
        for pattern, replacement in self._patterns:
            result = pattern.sub(replacement, result)
        return result

    def mask_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Mask sensitive data in a dictionary of log fields.

        Keys that look like credentials are redacted wholesale; string values
        are run through the text patterns.
        """
        result: dict[str, Any] = {}
        for key, value in data.items():
            key_lower = key.lower()
            if any(s in key_lower for s in self.SENSITIVE_KEYS) and not isinstance(
                value, (int, float, bool)
            ):
                result[key] = "***REDACTED***"
            elif isinstance(value, str):
                result[key] = self.mask(value)
            elif isinstance(value, dict):
                result[key] = self.mask_dict(value)
            else:
                result[key] = value
        return result


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_fields", None) or {}


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_timestamp: bool = True,
    ) -> None:
        super().__init__()
        self._masker = masker or SensitiveDataMasker()
        self._include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": self._masker.mask(record.getMessage()),
        }

        if self._include_timestamp:
            log_data["timestamp"] = time.strftime(
                "%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)
            ) + f".{int(record.msecs):03d}Z"

        if context_dict := get_log_context().to_dict():
            log_data["context"] = context_dict

        log_data.update(self._masker.mask_dict(_record_fields(record)))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter.

    Structured fields are appended as ``key=value`` pairs.
    """

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_context: bool = True,
    ) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._masker = masker or SensitiveDataMasker()
        self._include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        original_msg = record.msg
        record.msg = self._masker.mask(str(record.msg))
        try:
            result = super().format(record)
        finally:
            record.msg = original_msg

        fields = self._masker.mask_dict(_record_fields(record))
        if self._include_context:
            fields = {**get_log_context().to_dict(), **fields}
        if fields:
            result = f"{result} | " + " ".join(f"{k}={v}" for k, v in fields.items())

        return result


class SportsFetchLogger:
    """Logger with structured keyword fields.

    Example:
        >>> logger = get_logger("sportsfetch.cache")
        >>> logger.debug("Cache hit", key="sportsfetch:GetSeason:2024")
    """

    _level: ClassVar[LogLevel | None] = None
    _handler: ClassVar[logging.Handler | None] = None

    @classmethod
    def configure(
        cls,
        level: LogLevel | str = LogLevel.INFO,
        format: str = "text",
        stream: Any = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        """Configure the ``sportsfetch`` logger namespace.

        Args:
            level: Log level
            format: Output format ('json' or 'text')
            stream: Output stream (default: stderr)
            masker: Sensitive data masker
        """
        level = LogLevel(level.upper()) if isinstance(level, str) else level
        formatter: logging.Formatter = (
            JsonFormatter(masker=masker)
            if format == "json"
            else TextFormatter(masker=masker)
        )

        root = logging.getLogger(ROOT_LOGGER_NAME)
        if cls._handler is not None:
            root.removeHandler(cls._handler)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(formatter)
        handler.setLevel(level.to_logging_level())
        root.addHandler(handler)
        root.setLevel(level.to_logging_level())

        cls._handler = handler
        cls._level = level

    @classmethod
    def get_logger(cls, name: str) -> SportsFetchLogger:
        """Get a logger under the ``sportsfetch`` namespace."""
        if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        return cls(logging.getLogger(name))

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self, level: int, msg: str, exc_info: bool = False, **kwargs: Any
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {"extra_fields": kwargs} if kwargs else {}
        self._logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, exc_info=True, **kwargs)


def get_logger(name: str) -> SportsFetchLogger:
    """Get a logger instance.

    Args:
        name: Logger name (module ``__name__`` is typical)

    Returns:
        Logger instance
    """
    return SportsFetchLogger.get_logger(name)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    format: str = "text",
    stream: Any = None,
) -> None:
    """Configure sportsfetch logging output."""
    SportsFetchLogger.configure(level=level, format=format, stream=stream)
