"""
Base types for configuration.
"""

from __future__ import annotations

from typing import Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

DEFAULT_MANIFEST_NAME = "MANIFEST.txt"
DEFAULT_SKIPPABLE_EXECUTABLES: tuple[str, ...] = ("env", "xcrun")


__all__ = ["LogLevel", "LogFormat", "DEFAULT_MANIFEST_NAME", "DEFAULT_SKIPPABLE_EXECUTABLES"]
