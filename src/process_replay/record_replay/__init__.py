"""
Record and replay of process invocations.

This module provides:
- RecordingProcessManager: Records invocations to a directory
- ReplayProcessManager: Serves invocations back from that directory
- Manifest and manifest entries: The persisted invocation records
- CommandElement: Command elements with a sanitized manifest value
"""

from .command import CommandElement, CommandSanitizer, raw_command, sanitize
from .entries import CanRunManifestEntry, ManifestEntry, RunManifestEntry
from .manifest import ENTRY_DECODERS, Manifest
from .recording import RecordingProcess, RecordingProcessManager
from .replay import ReplayProcess, ReplayProcessManager, ReplayResult, ReplayState

__all__ = [
    # Commands
    "CommandElement",
    "CommandSanitizer",
    "sanitize",
    "raw_command",
    # Manifest
    "Manifest",
    "ManifestEntry",
    "RunManifestEntry",
    "CanRunManifestEntry",
    "ENTRY_DECODERS",
    # Managers
    "RecordingProcessManager",
    "RecordingProcess",
    "ReplayProcessManager",
    "ReplayProcess",
    "ReplayResult",
    "ReplayState",
]
