"""
Command elements and sanitization.

A ``CommandElement`` carries two values:
- a raw value, handed to the operating system to invoke the process
- a sanitized value, written to the manifest during recording and
  looked up during replay

Sanitizers typically strip user-specific or random segments (home
directories, temporary file names) so that lookups are deterministic.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

CommandSanitizer = Callable[[str], str]


class CommandElement:
    """A command element holding both a raw and a sanitized value.

    ``str(element)`` returns the raw value, so elements can be passed
    straight to ``LocalProcessManager``.

    Example:
        ```python
        output = CommandElement(
            tmp_dir / "out.json",
            sanitizer=lambda raw: "<tmp>/out.json",
        )
        await manager.run(["tool", "--out", output])
        ```
    """

    __slots__ = ("raw", "_sanitizer")

    def __init__(self, raw: Any, *, sanitizer: CommandSanitizer | None = None):
        self.raw = str(raw)
        self._sanitizer = sanitizer

    @property
    def sanitized(self) -> str:
        """The raw value with non-deterministic segments removed."""
        if self._sanitizer is None:
            return self.raw
        return self._sanitizer(self.raw)

    def __str__(self) -> str:
        return self.raw

    def __fspath__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"CommandElement(raw={self.raw!r}, sanitized={self.sanitized!r})"


def sanitize(command: Iterable[Any]) -> list[str]:
    """Map each element to its sanitized value, or its plain string form."""
    return [element.sanitized if isinstance(element, CommandElement) else str(element) for element in command]


def raw_command(command: Iterable[Any]) -> list[str]:
    """Map each element to the value handed to the operating system."""
    return [str(element) for element in command]


__all__ = ["CommandSanitizer", "CommandElement", "sanitize", "raw_command"]
