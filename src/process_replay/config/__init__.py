"""
Configuration system for process-replay.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Sensible defaults with override capability
"""

from .base import DEFAULT_MANIFEST_NAME, DEFAULT_SKIPPABLE_EXECUTABLES, LogFormat, LogLevel
from .logging import LoggingConfig
from .record_replay import RecordingConfig, ReplayConfig
from .settings import Settings, configure, get_settings, load_env

__all__ = [
    # Types
    "LogLevel",
    "LogFormat",
    "DEFAULT_MANIFEST_NAME",
    "DEFAULT_SKIPPABLE_EXECUTABLES",
    # Section configs
    "RecordingConfig",
    "ReplayConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "load_env",
]
