"""
Shared test fixtures and fakes for process-replay tests.

This module provides:
- FakeProcess: In-memory process with scripted output and exit behavior
- FakeProcessManager: Scripted delegate for the recording manager
- Fixtures for recording directories and the checked-in replay fixture
"""

from __future__ import annotations

import asyncio
import itertools
import signal
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from process_replay.errors import ProcessException
from process_replay.interface import (
    SYSTEM_ENCODING,
    ByteStream,
    Process,
    ProcessManager,
    ProcessResult,
    ProcessStartMode,
    decode_output,
)

DATA_DIR = Path(__file__).parent / "data"


# =============================================================================
# Fakes
# =============================================================================


@dataclass
class FakeInvocation:
    """Scripted behavior of one fake process."""

    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0
    # Keeps running until signalled
    daemon: bool = False
    # Ignores SIGTERM; only finish() ends it
    ignore_sigterm: bool = False


class FakeProcess(Process):
    """A process living entirely in memory."""

    def __init__(self, pid: int, invocation: FakeInvocation):
        self._pid = pid
        self._invocation = invocation
        self._stdout = ByteStream()
        self._stderr = ByteStream()
        self._exit: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self.signals: list[int] = []

        if invocation.stdout:
            self._stdout.feed(invocation.stdout)
        if invocation.stderr:
            self._stderr.feed(invocation.stderr)
        if not invocation.daemon:
            self.finish(invocation.exit_code)

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def stdout(self) -> ByteStream:
        return self._stdout

    @property
    def stderr(self) -> ByteStream:
        return self._stderr

    @property
    def returncode(self) -> int | None:
        return self._exit.result() if self._exit.done() else None

    async def wait(self) -> int:
        return await asyncio.shield(self._exit)

    def kill(self, sig: int = signal.SIGTERM) -> bool:
        self.signals.append(sig)
        if self._exit.done():
            return False
        if sig == signal.SIGTERM and self._invocation.ignore_sigterm:
            return True
        self.finish(-sig)
        return True

    def finish(self, exit_code: int) -> None:
        self._stdout.close()
        self._stderr.close()
        if not self._exit.done():
            self._exit.set_result(exit_code)


@dataclass
class FakeProcessManager(ProcessManager):
    """
    Scripted ProcessManager.

    Commands are looked up by their raw string form; unscripted commands
    echo their arguments to stdout and exit 0.
    """

    scripts: dict[tuple[str, ...], FakeInvocation] = field(default_factory=dict)
    runnable: set[str] = field(default_factory=set)
    failing: set[str] = field(default_factory=set)
    pids: Iterator[int] = field(default_factory=lambda: itertools.count(1000))

    calls: list[tuple[str, list[str]]] = field(default_factory=list)
    processes: dict[int, FakeProcess] = field(default_factory=dict)
    killed: list[tuple[int, int]] = field(default_factory=list)

    def script(self, command: list[str], **kwargs: Any) -> None:
        self.scripts[tuple(command)] = FakeInvocation(**kwargs)

    def _invoke(self, operation: str, command: Any) -> tuple[int, FakeInvocation]:
        raw = [str(element) for element in command]
        self.calls.append((operation, raw))
        if raw[0] in self.failing:
            raise ProcessException(raw[0], raw[1:], "No such file or directory", 2)
        invocation = self.scripts.get(tuple(raw))
        if invocation is None:
            invocation = FakeInvocation(stdout=(" ".join(raw[1:]) + "\n").encode())
        return next(self.pids), invocation

    async def start(
        self,
        command: Any,
        *,
        working_directory: str | None = None,
        environment: Mapping[str, str] | None = None,
        include_parent_environment: bool = True,
        run_in_shell: bool = False,
        mode: ProcessStartMode = ProcessStartMode.NORMAL,
    ) -> Process:
        pid, invocation = self._invoke("start", command)
        process = FakeProcess(pid, invocation)
        self.processes[pid] = process
        return process

    async def run(
        self,
        command: Any,
        *,
        working_directory: str | None = None,
        environment: Mapping[str, str] | None = None,
        include_parent_environment: bool = True,
        run_in_shell: bool = False,
        stdout_encoding: str | None = SYSTEM_ENCODING,
        stderr_encoding: str | None = SYSTEM_ENCODING,
    ) -> ProcessResult:
        return self.run_sync(
            command,
            stdout_encoding=stdout_encoding,
            stderr_encoding=stderr_encoding,
        )

    def run_sync(
        self,
        command: Any,
        *,
        working_directory: str | None = None,
        environment: Mapping[str, str] | None = None,
        include_parent_environment: bool = True,
        run_in_shell: bool = False,
        stdout_encoding: str | None = SYSTEM_ENCODING,
        stderr_encoding: str | None = SYSTEM_ENCODING,
    ) -> ProcessResult:
        pid, invocation = self._invoke("run", command)
        return ProcessResult(
            pid=pid,
            exit_code=invocation.exit_code,
            stdout=decode_output(invocation.stdout, stdout_encoding),
            stderr=decode_output(invocation.stderr, stderr_encoding),
        )

    def can_run(self, executable: Any, *, working_directory: str | None = None) -> bool:
        return str(executable) in self.runnable

    def kill_pid(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        self.killed.append((pid, sig))
        process = self.processes.get(pid)
        if process is None:
            return False
        return process.kill(sig)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_manager() -> FakeProcessManager:
    """Scripted delegate manager."""
    return FakeProcessManager()


@pytest.fixture
def recording_dir(tmp_path: Path) -> Path:
    """An empty directory to record into."""
    path = tmp_path / "recording"
    path.mkdir()
    return path


@pytest.fixture
def replay_dir() -> Path:
    """The checked-in replay fixture."""
    return DATA_DIR / "replay"
