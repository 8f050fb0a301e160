"""
Recording process manager.

Wraps a delegate ``ProcessManager`` and records every invocation into a
recording directory that ``ReplayProcessManager`` can later serve from:

- ``MANIFEST.txt``: the invocation manifest (see ``Manifest``)
- ``<basename>.stdout`` / ``<basename>.stderr``: captured stdio per run entry
"""

from __future__ import annotations

import asyncio
import os
import signal
import threading
from collections.abc import Mapping
from typing import Any, BinaryIO

import aiofiles

from ..config import RecordingConfig, get_settings
from ..errors import RecordingDestinationError
from ..interface.manager import Command, ProcessManager
from ..interface.process import (
    SYSTEM_ENCODING,
    ByteStream,
    Output,
    Process,
    ProcessResult,
    ProcessStartMode,
    encode_output,
)
from ..logging import DrainLog, InvocationLog, StructuredLogger, get_logger, timed
from .command import sanitize
from .entries import CanRunManifestEntry, RunManifestEntry
from .manifest import Manifest


class RecordingProcess(Process):
    """A Process that tees the delegate's stdio into blob files.

    Each chunk is written and flushed to disk before being forwarded to
    this process's own ``stdout``/``stderr`` streams.
    """

    def __init__(self, delegate: Process, stdout_file: BinaryIO, stderr_file: BinaryIO):
        self._delegate = delegate
        self._stdout = ByteStream()
        self._stderr = ByteStream()
        self._captures = [
            asyncio.create_task(_capture(delegate.stdout, stdout_file, self._stdout)),
            asyncio.create_task(_capture(delegate.stderr, stderr_file, self._stderr)),
        ]

    @property
    def delegate(self) -> Process:
        return self._delegate

    @property
    def pid(self) -> int:
        return self._delegate.pid

    @property
    def stdout(self) -> ByteStream:
        return self._stdout

    @property
    def stderr(self) -> ByteStream:
        return self._stderr

    @property
    def stdin(self) -> asyncio.StreamWriter | None:
        return self._delegate.stdin

    @property
    def returncode(self) -> int | None:
        return self._delegate.returncode

    async def wait(self) -> int:
        """Wait for exit and for both captures to finish.

        Raises:
            OSError: If writing a captured chunk to disk failed.
        """
        exit_code = await self._delegate.wait()
        await self.captured()
        return exit_code

    async def captured(self) -> None:
        """Wait until both stdio streams have been fully written to disk."""
        await asyncio.gather(*self._captures)

    def kill(self, sig: int = signal.SIGTERM) -> bool:
        return self._delegate.kill(sig)


async def _capture(source: ByteStream, blob: BinaryIO, sink: ByteStream) -> None:
    try:
        async for chunk in source:
            blob.write(chunk)
            blob.flush()
            sink.feed(chunk)
    except Exception as exc:
        sink.fail(exc)
        raise
    else:
        sink.close()
    finally:
        blob.close()


class RecordingProcessManager(ProcessManager):
    """
    Records process invocations to disk for later replay.

    Invocations are forwarded unchanged to ``delegate``; the manifest
    stores the sanitized command. Call ``flush()`` before the program
    exits, otherwise the manifest is never written.

    Example:
        ```python
        manager = RecordingProcessManager(LocalProcessManager(), "/tmp/rec")

        result = await manager.run(["git", "rev-parse", "HEAD"])
        process = await manager.start(["tail", "-f", "log.txt"])

        await manager.flush(finish_running_processes=True)
        ```
    """

    def __init__(
        self,
        delegate: ProcessManager,
        destination: str | os.PathLike[str],
        *,
        config: RecordingConfig | None = None,
        logger: StructuredLogger | None = None,
    ):
        destination = os.fspath(destination)
        if not os.path.isdir(destination):
            raise RecordingDestinationError(destination, "Recording destination is not an existing directory")
        if os.listdir(destination):
            raise RecordingDestinationError(destination, "Recording destination is not empty")

        self._delegate = delegate
        self._destination = destination
        self._config = config or get_settings().recording
        self._logger = (logger or get_logger()).bind(manager="recording", recording_dir=destination)

        self._manifest = Manifest()
        self._lock = threading.Lock()
        # In-flight trackers and the entry each one backfills; pids may be reused
        self._running: dict[asyncio.Task, RunManifestEntry] = {}
        self._trackers: list[asyncio.Task] = []

    @property
    def delegate(self) -> ProcessManager:
        return self._delegate

    @property
    def destination(self) -> str:
        return self._destination

    @property
    def manifest(self) -> Manifest:
        return self._manifest

    @property
    def running_pids(self) -> list[int]:
        """Pids of started processes that have not exited yet."""
        return [entry.pid for entry in self._running.values()]

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
        process = await self._delegate.start(
            command,
            working_directory=working_directory,
            environment=environment,
            include_parent_environment=include_parent_environment,
            run_in_shell=run_in_shell,
            mode=mode,
        )

        entry = self._add_run_entry(
            command,
            pid=process.pid,
            working_directory=working_directory,
            environment=environment,
            include_parent_environment=include_parent_environment,
            run_in_shell=run_in_shell,
            mode=mode,
        )
        stdout_file = open(self._blob_path(entry.basename, "stdout"), "wb")
        stderr_file = open(self._blob_path(entry.basename, "stderr"), "wb")
        recording = RecordingProcess(process, stdout_file, stderr_file)

        tracker = asyncio.create_task(self._track(recording, entry))
        self._running[tracker] = entry
        self._trackers.append(tracker)

        self._log_invocation("start", entry)
        return recording

    async def _track(self, process: RecordingProcess, entry: RunManifestEntry) -> int:
        try:
            exit_code = await process.delegate.wait()
        finally:
            self._running.pop(asyncio.current_task(), None)
        entry.exit_code = exit_code
        await process.captured()
        return exit_code

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
        result = await self._delegate.run(
            command,
            working_directory=working_directory,
            environment=environment,
            include_parent_environment=include_parent_environment,
            run_in_shell=run_in_shell,
            stdout_encoding=stdout_encoding,
            stderr_encoding=stderr_encoding,
        )

        entry = self._add_run_entry(
            command,
            pid=result.pid,
            working_directory=working_directory,
            environment=environment,
            include_parent_environment=include_parent_environment,
            run_in_shell=run_in_shell,
            stdout_encoding=stdout_encoding,
            stderr_encoding=stderr_encoding,
            exit_code=result.exit_code,
        )
        await self._write_blob(entry.basename, "stdout", result.stdout, stdout_encoding)
        await self._write_blob(entry.basename, "stderr", result.stderr, stderr_encoding)

        self._log_invocation("run", entry)
        return result

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
        result = self._delegate.run_sync(
            command,
            working_directory=working_directory,
            environment=environment,
            include_parent_environment=include_parent_environment,
            run_in_shell=run_in_shell,
            stdout_encoding=stdout_encoding,
            stderr_encoding=stderr_encoding,
        )

        entry = self._add_run_entry(
            command,
            pid=result.pid,
            working_directory=working_directory,
            environment=environment,
            include_parent_environment=include_parent_environment,
            run_in_shell=run_in_shell,
            stdout_encoding=stdout_encoding,
            stderr_encoding=stderr_encoding,
            exit_code=result.exit_code,
        )
        self._write_blob_sync(entry.basename, "stdout", result.stdout, stdout_encoding)
        self._write_blob_sync(entry.basename, "stderr", result.stderr, stderr_encoding)

        self._log_invocation("run_sync", entry)
        return result

    def can_run(self, executable: Any, *, working_directory: str | None = None) -> bool:
        result = self._delegate.can_run(executable, working_directory=working_directory)
        with self._lock:
            self._manifest.add(CanRunManifestEntry(executable=str(executable), result=result))
        self._logger.debug("can_run", executable=str(executable), result=result)
        return result

    def kill_pid(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        return self._delegate.kill_pid(pid, sig)

    # =========================================================================
    # Persistence
    # =========================================================================

    async def flush(
        self,
        *,
        finish_running_processes: bool = False,
        timeout: float | None = None,
    ) -> None:
        """
        Write the manifest to the recording directory.

        Args:
            finish_running_processes: Wait for started processes to exit
                first. Processes still running after ``timeout`` are marked
                as daemons and sent SIGTERM; those still running after a
                second ``timeout`` are marked as not responding.
            timeout: Bound in seconds for each wait; defaults to
                ``config.flush_timeout``. Ignored unless
                ``finish_running_processes`` is set.

        Raises:
            OSError: If capturing the stdio of a finished process failed.
        """
        if finish_running_processes:
            await self._drain(self._config.flush_timeout if timeout is None else timeout)

        manifest_path = os.path.join(self._destination, self._config.manifest_name)
        async with aiofiles.open(manifest_path, "w", encoding="utf-8") as f:
            await f.write(self._manifest.to_json())

        for tracker in [t for t in self._trackers if t.done()]:
            self._trackers.remove(tracker)
            tracker.result()

    async def _drain(self, timeout: float) -> None:
        with timed() as timer:
            await self._wait_running(timeout)
            daemons = list(self._running.values())
            for entry in daemons:
                entry.mark_daemon()
                self._delegate.kill_pid(entry.pid)

            # Give signalled processes one more window to exit.
            await self._wait_running(timeout)
            not_responding = list(self._running.values())
            for entry in not_responding:
                entry.mark_not_responding()

        if get_settings().logging.log_drains:
            self._logger.log_drain(
                DrainLog(
                    waited_seconds=timer.elapsed,
                    daemons=[entry.pid for entry in daemons],
                    not_responding=[entry.pid for entry in not_responding],
                )
            )

    async def _wait_running(self, timeout: float) -> None:
        tasks = list(self._running)
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _add_run_entry(self, command: Command, *, pid: int, **fields: Any) -> RunManifestEntry:
        sanitized = sanitize(command)
        with self._lock:
            entry = RunManifestEntry(
                pid=pid,
                basename=self._basename(pid, sanitized),
                command=sanitized,
                **fields,
            )
            self._manifest.add(entry)
        return entry

    def _basename(self, pid: int, sanitized_command: list[str]) -> str:
        """Human-readable, unique file stem: ``<index>.<identifier>.<pid>``."""
        identifier = "executable"
        for element in sanitized_command:
            if element.startswith("-"):
                continue
            identifier = os.path.basename(element.rstrip("/\\")) or element
            if identifier not in self._config.skippable_executables:
                break
        return f"{len(self._manifest):03d}.{identifier}.{pid}"

    def _blob_path(self, basename: str, stream: str) -> str:
        return os.path.join(self._destination, f"{basename}.{stream}")

    async def _write_blob(self, basename: str, stream: str, data: Output, encoding: str | None) -> None:
        async with aiofiles.open(self._blob_path(basename, stream), "wb") as f:
            await f.write(encode_output(data, encoding))
            await f.flush()

    def _write_blob_sync(self, basename: str, stream: str, data: Output, encoding: str | None) -> None:
        with open(self._blob_path(basename, stream), "wb") as f:
            f.write(encode_output(data, encoding))
            f.flush()

    def _log_invocation(self, operation: str, entry: RunManifestEntry) -> None:
        if not get_settings().logging.log_invocations:
            return
        self._logger.log_invocation(
            InvocationLog(
                operation=operation,
                command=entry.command,
                pid=entry.pid,
                basename=entry.basename,
                exit_code=entry.exit_code,
            )
        )


__all__ = ["RecordingProcess", "RecordingProcessManager"]
