"""
ProcessManager interface.

Every backend (local, recording, replay) implements the same five
operations so that code under test can be handed any of them.
"""

from __future__ import annotations

import signal
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from .process import SYSTEM_ENCODING, Process, ProcessResult, ProcessStartMode

# Elements may be str, os.PathLike, CommandElement or anything with a
# meaningful str(); element 0 is the executable.
Command = Sequence[Any]


class ProcessManager(ABC):
    """Abstract interface for spawning and inspecting processes."""

    @abstractmethod
    async def start(
        self,
        command: Command,
        *,
        working_directory: str | None = None,
        environment: Mapping[str, str] | None = None,
        include_parent_environment: bool = True,
        run_in_shell: bool = False,
        mode: ProcessStartMode = ProcessStartMode.NORMAL,
    ) -> Process:
        """Start a process and return immediately with a handle on it."""
        ...

    @abstractmethod
    async def run(
        self,
        command: Command,
        *,
        working_directory: str | None = None,
        environment: Mapping[str, str] | None = None,
        include_parent_environment: bool = True,
        run_in_shell: bool = False,
        stdout_encoding: str | None = SYSTEM_ENCODING,
        stderr_encoding: str | None = SYSTEM_ENCODING,
    ) -> ProcessResult:
        """Run a process to completion without blocking the event loop.

        With an encoding of None the corresponding output is returned as bytes.
        """
        ...

    @abstractmethod
    def run_sync(
        self,
        command: Command,
        *,
        working_directory: str | None = None,
        environment: Mapping[str, str] | None = None,
        include_parent_environment: bool = True,
        run_in_shell: bool = False,
        stdout_encoding: str | None = SYSTEM_ENCODING,
        stderr_encoding: str | None = SYSTEM_ENCODING,
    ) -> ProcessResult:
        """Run a process to completion, blocking the calling thread."""
        ...

    @abstractmethod
    def can_run(self, executable: Any, *, working_directory: str | None = None) -> bool:
        """Tell whether ``executable`` can be resolved and run."""
        ...

    @abstractmethod
    def kill_pid(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        """Send ``sig`` to the process with id ``pid``."""
        ...


__all__ = ["Command", "ProcessManager"]
