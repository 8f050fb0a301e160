"""
Recording and replay configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .base import DEFAULT_MANIFEST_NAME, DEFAULT_SKIPPABLE_EXECUTABLES


@dataclass
class RecordingConfig:
    """Configuration for RecordingProcessManager."""

    # Name of the manifest file inside the recording directory
    manifest_name: str = DEFAULT_MANIFEST_NAME

    # Wrapper executables skipped when deriving a basename identifier
    skippable_executables: tuple[str, ...] = field(default_factory=lambda: DEFAULT_SKIPPABLE_EXECUTABLES)

    # Default bound (seconds) for each drain phase of flush()
    flush_timeout: float = 0.02

    def __post_init__(self):
        if not self.manifest_name:
            raise ValueError("manifest_name cannot be empty")
        if self.flush_timeout < 0:
            raise ValueError("flush_timeout cannot be negative")
        self.skippable_executables = tuple(self.skippable_executables)


@dataclass
class ReplayConfig:
    """Configuration for ReplayProcessManager."""

    manifest_name: str = DEFAULT_MANIFEST_NAME

    # Delay (seconds) before a replayed process emits its recorded output
    stream_delay: float = 0.0

    def __post_init__(self):
        if not self.manifest_name:
            raise ValueError("manifest_name cannot be empty")
        if self.stream_delay < 0:
            raise ValueError("stream_delay cannot be negative")


__all__ = ["RecordingConfig", "ReplayConfig"]
