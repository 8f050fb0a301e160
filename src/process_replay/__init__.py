"""
Deterministic record and replay of OS process invocations.

Record real invocations once with ``RecordingProcessManager``, then hand
tests a ``ReplayProcessManager`` that answers the same invocations from
disk without spawning anything.
"""

from .config import RecordingConfig, ReplayConfig, Settings, configure, get_settings, load_env
from .errors import (
    ConstructionError,
    ErrorCode,
    InvalidRecordingError,
    ManifestFormatError,
    MatchError,
    NoMatchingCanRunError,
    NoMatchingInvocationError,
    ProcessException,
    ProcessReplayError,
    RecordingDestinationError,
    UnsupportedOperationError,
)
from .interface import (
    SYSTEM_ENCODING,
    ByteStream,
    LocalProcessManager,
    Platform,
    Process,
    ProcessManager,
    ProcessResult,
    ProcessStartMode,
    get_executable_path,
)
from .logging import StructuredLogger, configure_logging, get_logger
from .record_replay import (
    CanRunManifestEntry,
    CommandElement,
    Manifest,
    RecordingProcessManager,
    ReplayProcessManager,
    RunManifestEntry,
    sanitize,
)

__version__ = "0.1.0"

__all__ = [
    # Interface
    "ProcessManager",
    "LocalProcessManager",
    "Process",
    "ProcessResult",
    "ProcessStartMode",
    "ByteStream",
    "SYSTEM_ENCODING",
    "Platform",
    "get_executable_path",
    # Record / replay
    "RecordingProcessManager",
    "ReplayProcessManager",
    "Manifest",
    "RunManifestEntry",
    "CanRunManifestEntry",
    "CommandElement",
    "sanitize",
    # Errors
    "ErrorCode",
    "ProcessReplayError",
    "ConstructionError",
    "RecordingDestinationError",
    "InvalidRecordingError",
    "ManifestFormatError",
    "ProcessException",
    "MatchError",
    "NoMatchingInvocationError",
    "NoMatchingCanRunError",
    "UnsupportedOperationError",
    # Config
    "Settings",
    "RecordingConfig",
    "ReplayConfig",
    "get_settings",
    "configure",
    "load_env",
    # Logging
    "StructuredLogger",
    "get_logger",
    "configure_logging",
]
