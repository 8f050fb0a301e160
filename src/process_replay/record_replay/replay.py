"""
Replay process manager.

Serves process invocations out of a recording directory written by
``RecordingProcessManager``, without spawning any OS process.

This module provides:
- ReplayProcessManager: Looks invocations up in the manifest
- ReplayProcess: A fabricated process emitting recorded stdio
- ReplayResult: Recorded result of a run-to-completion invocation
"""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Mapping
from enum import Enum
from typing import Any

import aiofiles

from ..config import ReplayConfig, get_settings
from ..errors import (
    InvalidRecordingError,
    ManifestFormatError,
    NoMatchingCanRunError,
    NoMatchingInvocationError,
    ProcessException,
    UnsupportedOperationError,
)
from ..interface.manager import Command, ProcessManager
from ..interface.process import (
    SYSTEM_ENCODING,
    ByteStream,
    Output,
    Process,
    ProcessResult,
    ProcessStartMode,
    decode_output,
    encode_output,
    normalize_encoding,
)
from ..logging import InvocationLog, StructuredLogger, get_logger
from .command import sanitize
from .entries import RunManifestEntry
from .manifest import Manifest


class ReplayState(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    EXITED = "exited"


class ReplayResult(ProcessResult):
    """A ProcessResult whose output was read back from a recording."""

    @classmethod
    def from_entry(cls, entry: RunManifestEntry, stdout: Output, stderr: Output) -> ReplayResult:
        return cls(pid=entry.pid, exit_code=entry.exit_code, stdout=stdout, stderr=stderr)

    def as_process(self, daemon: bool, *, delay: float = 0.0) -> ReplayProcess:
        return ReplayProcess(
            pid=self.pid,
            exit_code=self.exit_code,
            stdout=encode_output(self.stdout, None),
            stderr=encode_output(self.stderr, None),
            daemon=daemon,
            delay=delay,
        )


class ReplayProcess(Process):
    """
    A fabricated process that replays recorded stdio.

    Output is emitted from a timer scheduled on the running loop, never
    from the constructor, so callers can attach to ``stdout``/``stderr``
    first. Each stream receives its recorded bytes as a single chunk.
    A non-daemon process then exits with the recorded exit code; a daemon
    process keeps running until ``kill()`` is called.
    """

    def __init__(
        self,
        *,
        pid: int,
        exit_code: int | None,
        stdout: bytes,
        stderr: bytes,
        daemon: bool = False,
        delay: float = 0.0,
    ):
        self._pid = pid
        self._exit_code = exit_code
        self._stdout_data = stdout
        self._stderr_data = stderr
        self._daemon = daemon
        self._stdout = ByteStream()
        self._stderr = ByteStream()
        self._state = ReplayState.PENDING

        loop = asyncio.get_running_loop()
        self._exited: asyncio.Future[int | None] = loop.create_future()
        loop.call_later(delay, self._emit)

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def daemon(self) -> bool:
        return self._daemon

    @property
    def state(self) -> ReplayState:
        return self._state

    @property
    def stdout(self) -> ByteStream:
        return self._stdout

    @property
    def stderr(self) -> ByteStream:
        return self._stderr

    @property
    def returncode(self) -> int | None:
        if self._state is ReplayState.EXITED:
            return self._exit_code
        return None

    async def wait(self) -> int | None:
        return await asyncio.shield(self._exited)

    def kill(self, sig: int = signal.SIGTERM) -> bool:
        """Close both streams and exit with the recorded exit code.

        Returns True the first time, False once the process has exited.
        """
        if self._exited.done():
            return False
        self._state = ReplayState.EXITED
        self._stdout.close()
        self._stderr.close()
        self._exited.set_result(self._exit_code)
        return True

    def _emit(self) -> None:
        if self._state is not ReplayState.PENDING:
            return
        self._state = ReplayState.STREAMING
        self._stdout.feed(self._stdout_data)
        self._stderr.feed(self._stderr_data)
        if not self._daemon:
            self.kill()


def _read_error(command: list[str], error: Exception) -> ProcessException:
    return ProcessException(command[0] if command else "", command[1:], str(error), cause=error)


class ReplayProcessManager(ProcessManager):
    """
    Replays invocations recorded by ``RecordingProcessManager``.

    Each invocation consumes the first pending manifest entry that matches
    its sanitized command (plus the start mode, or the output encodings);
    an entry is never served twice.

    Example:
        ```python
        manager = await ReplayProcessManager.create("tests/data/replay")

        result = await manager.run(["git", "rev-parse", "HEAD"])
        assert result.exit_code == 0
        ```
    """

    def __init__(
        self,
        manifest: Manifest,
        location: str,
        *,
        config: ReplayConfig | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._manifest = manifest
        self._location = location
        self._config = config or get_settings().replay
        self._logger = (logger or get_logger()).bind(manager="replay", recording_dir=location)

    @classmethod
    async def create(
        cls,
        location: str | os.PathLike[str],
        *,
        config: ReplayConfig | None = None,
        logger: StructuredLogger | None = None,
    ) -> ReplayProcessManager:
        """Load the recording at ``location``.

        Raises:
            InvalidRecordingError: If ``location`` does not exist, or lacks a
                well-formed manifest.
        """
        location = os.fspath(location)
        config = config or get_settings().replay
        manifest_path = cls._manifest_path(location, config)
        async with aiofiles.open(manifest_path, "rb") as f:
            content = await f.read()
        return cls(cls._parse(location, content), location, config=config, logger=logger)

    @classmethod
    def load(
        cls,
        location: str | os.PathLike[str],
        *,
        config: ReplayConfig | None = None,
        logger: StructuredLogger | None = None,
    ) -> ReplayProcessManager:
        """Synchronous variant of ``create``."""
        location = os.fspath(location)
        config = config or get_settings().replay
        manifest_path = cls._manifest_path(location, config)
        with open(manifest_path, "rb") as f:
            content = f.read()
        return cls(cls._parse(location, content), location, config=config, logger=logger)

    @staticmethod
    def _manifest_path(location: str, config: ReplayConfig) -> str:
        if not os.path.isdir(location):
            raise InvalidRecordingError(location, "Recording directory does not exist")
        manifest_path = os.path.join(location, config.manifest_name)
        if not os.path.isfile(manifest_path):
            raise InvalidRecordingError(location)
        return manifest_path

    @staticmethod
    def _parse(location: str, content: bytes) -> Manifest:
        # Blob files referenced by the manifest are not checked here.
        try:
            return Manifest.from_json(content.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise InvalidRecordingError(location, f"Malformed manifest ({e})", cause=e) from e
        except ManifestFormatError as e:
            raise InvalidRecordingError(location, f"Malformed manifest ({e.message})", cause=e) from e

    @property
    def location(self) -> str:
        return self._location

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    # =========================================================================
    # ProcessManager
    # =========================================================================

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
        sanitized = sanitize(command)
        entry = self._pop_entry("start", sanitized, mode=mode)
        stdout, stderr = await self._read_blobs(sanitized, entry, None, None)
        result = ReplayResult.from_entry(entry, stdout, stderr)
        return result.as_process(entry.daemon, delay=self._config.stream_delay)

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
        sanitized = sanitize(command)
        entry = self._pop_entry(
            "run",
            sanitized,
            stdout_encoding=normalize_encoding(stdout_encoding),
            stderr_encoding=normalize_encoding(stderr_encoding),
        )
        stdout, stderr = await self._read_blobs(sanitized, entry, entry.stdout_encoding, entry.stderr_encoding)
        return ReplayResult.from_entry(entry, stdout, stderr)

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
        sanitized = sanitize(command)
        entry = self._pop_entry(
            "run_sync",
            sanitized,
            stdout_encoding=normalize_encoding(stdout_encoding),
            stderr_encoding=normalize_encoding(stderr_encoding),
        )
        try:
            stdout = self._read_blob_sync(entry.basename, "stdout", entry.stdout_encoding)
            stderr = self._read_blob_sync(entry.basename, "stderr", entry.stderr_encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise _read_error(sanitized, e) from e
        return ReplayResult.from_entry(entry, stdout, stderr)

    def can_run(self, executable: Any, *, working_directory: str | None = None) -> bool:
        executable = str(executable)
        entry = self._manifest.find_pending_can_run_entry(executable=executable)
        if entry is None:
            self._logger.warning("No matching can_run entry", executable=executable)
            raise NoMatchingCanRunError(executable)
        entry.mark_invoked()
        return entry.result

    def kill_pid(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        raise UnsupportedOperationError(f"{type(self).__name__}.kill_pid() is not supported during replay")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _pop_entry(self, operation: str, command: list[str], **criteria: Any) -> RunManifestEntry:
        entry = self._manifest.find_pending_run_entry(command=command, **criteria)
        if entry is None:
            self._logger.warning("No matching invocation", operation=operation, command=command)
            raise NoMatchingInvocationError(command[0] if command else "", command[1:])
        entry.mark_invoked()
        if get_settings().logging.log_invocations:
            self._logger.log_invocation(
                InvocationLog(
                    operation=operation,
                    command=command,
                    pid=entry.pid,
                    basename=entry.basename,
                    exit_code=entry.exit_code,
                )
            )
        return entry

    async def _read_blobs(
        self,
        command: list[str],
        entry: RunManifestEntry,
        stdout_encoding: str | None,
        stderr_encoding: str | None,
    ) -> tuple[Output, Output]:
        try:
            stdout = await self._read_blob(entry.basename, "stdout", stdout_encoding)
            stderr = await self._read_blob(entry.basename, "stderr", stderr_encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise _read_error(command, e) from e
        return stdout, stderr

    async def _read_blob(self, basename: str, stream: str, encoding: str | None) -> Output:
        async with aiofiles.open(os.path.join(self._location, f"{basename}.{stream}"), "rb") as f:
            data = await f.read()
        return decode_output(data, encoding)

    def _read_blob_sync(self, basename: str, stream: str, encoding: str | None) -> Output:
        with open(os.path.join(self._location, f"{basename}.{stream}"), "rb") as f:
            data = f.read()
        return decode_output(data, encoding)


__all__ = ["ReplayProcessManager", "ReplayProcess", "ReplayResult", "ReplayState"]
