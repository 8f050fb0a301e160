"""
Error taxonomy for process-replay.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Structured context for debugging
- Process invocation errors that carry the offending command
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for process-replay."""

    # Construction errors (1xxx)
    CONSTRUCTION_ERROR = "ERR_1000"
    INVALID_DESTINATION = "ERR_1001"
    INVALID_RECORDING = "ERR_1002"

    # Format errors (2xxx)
    FORMAT_ERROR = "ERR_2000"

    # Invocation errors (3xxx)
    PROCESS_ERROR = "ERR_3000"
    NO_MATCHING_INVOCATION = "ERR_3001"
    NO_MATCHING_CAN_RUN = "ERR_3002"

    # Unsupported operations (4xxx)
    UNSUPPORTED_OPERATION = "ERR_4000"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    INVALID_CONFIG = "ERR_6002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    location: str | None = None
    operation: str | None = None
    pid: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "operation": self.operation,
            "pid": self.pid,
            **self.extra,
        }


class ProcessReplayError(Exception):
    """
    Base exception for all process-replay errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.location:
            parts.append(f"(location={self.context.location})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Construction Errors
# =============================================================================


class ConstructionError(ProcessReplayError):
    """A manager could not be constructed. Never recovered internally."""

    code = ErrorCode.CONSTRUCTION_ERROR


class RecordingDestinationError(ConstructionError):
    """The recording destination is missing, not a directory, or not empty."""

    code = ErrorCode.INVALID_DESTINATION

    def __init__(self, location: str, reason: str = "Cannot record", **kwargs):
        kwargs.setdefault("context", ErrorContext(location=location, operation="record"))
        super().__init__(f"{reason}: {location}", **kwargs)
        self.location = location


class InvalidRecordingError(ConstructionError):
    """The replay location does not hold a valid recording."""

    code = ErrorCode.INVALID_RECORDING

    def __init__(self, location: str, reason: str = "Does not represent a valid recording", **kwargs):
        kwargs.setdefault("context", ErrorContext(location=location, operation="replay"))
        super().__init__(f"{reason}: {location}", **kwargs)
        self.location = location


# =============================================================================
# Format Errors
# =============================================================================


class ManifestFormatError(ProcessReplayError, ValueError):
    """Persisted manifest data is malformed or misses a required field."""

    code = ErrorCode.FORMAT_ERROR


# =============================================================================
# Invocation Errors
# =============================================================================


class ProcessException(ProcessReplayError):
    """A process could not be invoked."""

    code = ErrorCode.PROCESS_ERROR

    def __init__(
        self,
        executable: str,
        arguments: Sequence[str] = (),
        message: str = "",
        error_code: int = 0,
        **kwargs,
    ):
        self.executable = executable
        self.arguments = list(arguments)
        self.error_code = error_code
        super().__init__(message or f"OS error code: {error_code}", **kwargs)

    @property
    def command(self) -> list[str]:
        return [self.executable, *self.arguments]

    def __str__(self) -> str:
        args = " ".join(self.arguments)
        return f"ProcessException: {self.message}\n  Command: {self.executable} {args}".rstrip()


class MatchError(ProcessException):
    """No pending manifest entry satisfies a replayed invocation."""

    code = ErrorCode.NO_MATCHING_INVOCATION


class NoMatchingInvocationError(MatchError):
    """No pending run entry matches a replayed start/run/run_sync call."""

    def __init__(self, executable: str, arguments: Sequence[str] = (), **kwargs):
        super().__init__(executable, arguments, "No matching invocation found", **kwargs)


class NoMatchingCanRunError(MatchError, ValueError):
    """No pending can-run entry matches a replayed can_run call."""

    code = ErrorCode.NO_MATCHING_CAN_RUN

    def __init__(self, executable: str, **kwargs):
        super().__init__(executable, (), f"No matching can_run invocation found for {executable}", **kwargs)


# =============================================================================
# Unsupported Operations
# =============================================================================


class UnsupportedOperationError(ProcessReplayError, NotImplementedError):
    """The operation is intentionally not implemented."""

    code = ErrorCode.UNSUPPORTED_OPERATION


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(ProcessReplayError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR


class InvalidConfigError(ConfigError, ValueError):
    """Configuration is invalid."""

    code = ErrorCode.INVALID_CONFIG


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "ProcessReplayError",
    # Construction errors
    "ConstructionError",
    "RecordingDestinationError",
    "InvalidRecordingError",
    # Format errors
    "ManifestFormatError",
    # Invocation errors
    "ProcessException",
    "MatchError",
    "NoMatchingInvocationError",
    "NoMatchingCanRunError",
    # Unsupported operations
    "UnsupportedOperationError",
    # Config errors
    "ConfigError",
    "InvalidConfigError",
]
