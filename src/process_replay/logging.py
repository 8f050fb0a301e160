"""
Structured Logging for process-replay.

This module provides:
- Structured JSON logging with consistent fields
- Invocation logging for recorded and replayed processes
- Log level filtering and formatting options
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from .config import get_settings


# =============================================================================
# Log Record Types
# =============================================================================


@dataclass
class LogContext:
    """Context information attached to log records."""

    manager: str | None = None
    recording_dir: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            manager=kwargs.get("manager", self.manager),
            recording_dir=kwargs.get("recording_dir", self.recording_dir),
            operation=kwargs.get("operation", self.operation),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class InvocationLog:
    """Log record for a recorded or replayed invocation."""

    operation: str
    command: list[str]
    pid: int | None = None
    basename: str | None = None
    exit_code: int | None = None

    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class DrainLog:
    """Log record for the outcome of draining running processes."""

    waited_seconds: float
    daemons: list[int] = field(default_factory=list)
    not_responding: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured JSON output and context tracking.

    Example:
        ```python
        logger = StructuredLogger("process_replay")

        with logger.scoped(manager="recording", recording_dir="/tmp/rec"):
            logger.log_invocation(InvocationLog(operation="start", command=["echo"]))
        ```
    """

    def __init__(
        self,
        name: str = "process_replay",
        level: str = "INFO",
        json_output: bool = False,
    ):
        self.name = name
        self.json_output = json_output

        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper()))

        self._context: LogContext = LogContext()

        handler = next((h for h in self._logger.handlers if getattr(h, "_process_replay", False)), None)
        if handler is None:
            handler = logging.StreamHandler(sys.stderr)
            handler._process_replay = True  # type: ignore[attr-defined]
            self._logger.addHandler(handler)
        if json_output:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(TextFormatter())

    @property
    def context(self) -> LogContext:
        return self._context

    def set_context(self, **kwargs) -> None:
        """Update the current log context."""
        self._context = self._context.with_update(**kwargs)

    def bind(self, **kwargs) -> StructuredLogger:
        """Return a logger sharing the same output with an extended context."""
        bound = StructuredLogger.__new__(StructuredLogger)
        bound.name = self.name
        bound.json_output = self.json_output
        bound._logger = self._logger
        bound._context = self._context.with_update(**kwargs)
        return bound

    @contextmanager
    def scoped(self, **kwargs) -> Iterator[LogContext]:
        """Temporarily extend the log context."""
        old_context = self._context
        try:
            self._context = old_context.with_update(**kwargs)
            yield self._context
        finally:
            self._context = old_context

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method."""
        if not self._logger.isEnabledFor(level):
            return

        record_data = {
            "message": message,
            **self._context.to_dict(),
        }

        if event_type:
            record_data["event_type"] = event_type

        if data:
            record_data.update(data)

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}".rstrip())

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    # Typed logging methods

    def log_invocation(self, invocation: InvocationLog) -> None:
        """Log a recorded or replayed invocation."""
        self._log(
            logging.DEBUG,
            f"{invocation.operation}: {' '.join(invocation.command)}",
            event_type="invocation",
            data=invocation.to_dict(),
        )

    def log_drain(self, drain: DrainLog) -> None:
        """Log the outcome of draining running processes."""
        level = logging.WARNING if drain.not_responding else logging.INFO
        message = f"Drained running processes ({drain.waited_seconds * 1000:.0f}ms)"
        if drain.daemons:
            message += f", {len(drain.daemons)} marked daemon"
        if drain.not_responding:
            message += f", {len(drain.not_responding)} not responding"
        self._log(level, message, event_type="drain", data=drain.to_dict())

    def log_error(
        self,
        error: Exception,
        message: str | None = None,
        **kwargs,
    ) -> None:
        """Log an error with context."""
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            **kwargs,
        }

        if hasattr(error, "code"):
            error_data["error_code"] = str(error.code.value)
        if hasattr(error, "context") and error.context:
            error_data["error_context"] = error.context.to_dict()

        self._log(
            logging.ERROR,
            message or f"Error: {error}",
            event_type="error",
            data=error_data,
        )


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        # Parse JSON message if present
        try:
            message_data = json.loads(record.getMessage())
            if isinstance(message_data, dict):
                log_data.update(message_data)
            else:
                log_data["message"] = record.getMessage()
        except (json.JSONDecodeError, TypeError):
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        return f"{timestamp} {color}{record.levelname:8}{reset} {record.getMessage()}"


# =============================================================================
# Timing Utilities
# =============================================================================


@dataclass
class Timer:
    """Simple timer for measuring durations."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        """Stop the timer and return duration in seconds."""
        self.end_time = time.perf_counter()
        return self.elapsed

    @property
    def elapsed(self) -> float:
        end = self.end_time or time.perf_counter()
        return end - self.start_time


@contextmanager
def timed() -> Iterator[Timer]:
    """Context manager for timing operations."""
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


# =============================================================================
# Global Logger
# =============================================================================

_default_logger: StructuredLogger | None = None


def get_logger(name: str = "process_replay") -> StructuredLogger:
    """Get or create a structured logger using the configured level and format."""
    global _default_logger
    if _default_logger is None or _default_logger.name != name:
        config = get_settings().logging
        _default_logger = StructuredLogger(name, level=config.level, json_output=config.format == "json")
    return _default_logger


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    **kwargs: Any,
) -> StructuredLogger:
    """Configure the default logger."""
    global _default_logger
    _default_logger = StructuredLogger(
        level=level,
        json_output=json_output,
        **kwargs,
    )
    return _default_logger


__all__ = [
    # Context
    "LogContext",
    # Log records
    "InvocationLog",
    "DrainLog",
    # Logger
    "StructuredLogger",
    # Formatters
    "JSONFormatter",
    "TextFormatter",
    # Timing
    "Timer",
    "timed",
    # Global
    "get_logger",
    "configure_logging",
]
