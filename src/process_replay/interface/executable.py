"""
Executable path resolution.

Searches ``PATH`` (and ``PATHEXT`` on Windows) for the executable a
command is supposed to launch.
"""

from __future__ import annotations

import ntpath
import os
import posixpath
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import ModuleType


def _local_operating_system() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return sys.platform


@dataclass(frozen=True)
class Platform:
    """The operating system and environment a command is resolved against."""

    operating_system: str = field(default_factory=_local_operating_system)
    environment: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))

    @property
    def is_windows(self) -> bool:
        return self.operating_system == "windows"

    @property
    def path_separator(self) -> str:
        return ";" if self.is_windows else ":"

    @property
    def path_module(self) -> ModuleType:
        return ntpath if self.is_windows else posixpath


def get_executable_path(
    command: str,
    working_directory: str | None = None,
    *,
    platform: Platform | None = None,
    exists: Callable[[str], bool] | None = None,
) -> str | None:
    """
    Search the ``PATH`` for the executable that ``command`` launches.

    If ``command`` contains a path separator it is resolved against
    ``working_directory`` (or used as-is when absolute) and ``PATH`` is
    not consulted. On Windows, a command without an extension is tried
    with every extension listed in ``PATHEXT``.

    Args:
        command: Command name or path.
        working_directory: Directory relative paths resolve against;
            defaults to the current directory.
        platform: Platform to resolve for; defaults to the local one.
        exists: Predicate telling whether a candidate file exists;
            defaults to ``os.path.isfile``.

    Returns:
        The first existing candidate path, or None if there is none.
    """
    platform = platform or Platform()
    exists = exists or os.path.isfile
    path = platform.path_module
    working_directory = working_directory or os.getcwd()

    extensions: list[str] = []
    if platform.is_windows and not path.splitext(command)[1]:
        pathext = platform.environment.get("PATHEXT", "")
        extensions = [ext for ext in pathext.split(platform.path_separator) if ext]

    separators = {path.sep, path.altsep} - {None}
    if any(sep in command for sep in separators):
        search_paths = [working_directory]
    else:
        search_path = platform.environment.get("PATH", "")
        search_paths = [p for p in search_path.split(platform.path_separator) if p]

    for candidate in _candidate_paths(command, search_paths, extensions, path):
        if exists(candidate):
            return candidate
    return None


def _candidate_paths(
    command: str,
    search_paths: list[str],
    extensions: list[str],
    path: ModuleType,
) -> list[str]:
    with_extensions = [f"{command}{ext}" for ext in extensions] if extensions else [command]
    if path.isabs(command):
        return with_extensions
    return [
        path.normpath(path.join(search_path, name))
        for search_path in search_paths
        for name in with_extensions
    ]


__all__ = ["Platform", "get_executable_path"]
