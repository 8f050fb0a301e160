"""
Local implementation of the ProcessManager interface.

Delegates directly to asyncio subprocesses (and ``subprocess.Popen`` for
the blocking ``run_sync``). Command elements are converted with ``str()``,
so ``CommandElement`` instances contribute their raw value.
"""

from __future__ import annotations

import asyncio
import os
import signal
import subprocess
from collections.abc import Mapping
from typing import Any

from ..errors import ProcessException
from .executable import Platform, get_executable_path
from .manager import Command, ProcessManager
from .process import (
    SYSTEM_ENCODING,
    ByteStream,
    Process,
    ProcessResult,
    ProcessStartMode,
    decode_output,
)

_CHUNK_SIZE = 64 * 1024


class LocalProcess(Process):
    """A Process backed by an ``asyncio.subprocess.Process``.

    Pipe readers are pumped into ``ByteStream`` objects as soon as the
    process starts, so output is buffered even before anyone listens.
    """

    def __init__(self, process: asyncio.subprocess.Process):
        self._process = process
        self._stdout = ByteStream()
        self._stderr = ByteStream()
        self._pumps = [
            asyncio.create_task(_pump(process.stdout, self._stdout)),
            asyncio.create_task(_pump(process.stderr, self._stderr)),
        ]

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def stdout(self) -> ByteStream:
        return self._stdout

    @property
    def stderr(self) -> ByteStream:
        return self._stderr

    @property
    def stdin(self) -> asyncio.StreamWriter | None:
        return self._process.stdin

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def wait(self) -> int:
        return await self._process.wait()

    def kill(self, sig: int = signal.SIGTERM) -> bool:
        try:
            self._process.send_signal(sig)
        except ProcessLookupError:
            return False
        return True


async def _pump(reader: asyncio.StreamReader | None, stream: ByteStream) -> None:
    if reader is None:
        stream.close()
        return
    try:
        while chunk := await reader.read(_CHUNK_SIZE):
            stream.feed(chunk)
    except Exception as exc:
        stream.fail(exc)
    else:
        stream.close()


class LocalProcessManager(ProcessManager):
    """Spawns real OS processes.

    Example:
        ```python
        manager = LocalProcessManager()
        result = await manager.run(["git", "status"])
        print(result.stdout)
        ```
    """

    def __init__(self, *, platform: Platform | None = None):
        self._platform = platform

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
        if mode.pipes_stdio:
            stdio = asyncio.subprocess.PIPE
        elif mode == ProcessStartMode.INHERIT_STDIO:
            stdio = None
        else:
            stdio = asyncio.subprocess.DEVNULL

        kwargs: dict[str, Any] = {
            "cwd": working_directory,
            "env": _environment(environment, include_parent_environment),
            "stdin": stdio,
            "stdout": stdio,
            "stderr": stdio,
        }
        if mode.is_detached and os.name == "posix":
            kwargs["start_new_session"] = True

        process = await self._spawn(command, working_directory, run_in_shell, kwargs)
        return LocalProcess(process)

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
        kwargs: dict[str, Any] = {
            "cwd": working_directory,
            "env": _environment(environment, include_parent_environment),
            "stdin": asyncio.subprocess.DEVNULL,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
        }
        process = await self._spawn(command, working_directory, run_in_shell, kwargs)
        stdout, stderr = await process.communicate()
        return ProcessResult(
            pid=process.pid,
            exit_code=process.returncode,
            stdout=decode_output(stdout, stdout_encoding, errors="replace"),
            stderr=decode_output(stderr, stderr_encoding, errors="replace"),
        )

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
        args, executable = self._prepare(command, working_directory, run_in_shell)
        try:
            process = subprocess.Popen(
                " ".join(args) if run_in_shell else [executable, *args[1:]],
                shell=run_in_shell,
                cwd=working_directory,
                env=_environment(environment, include_parent_environment),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessException(args[0], args[1:], str(e), e.errno or 0, cause=e) from e
        stdout, stderr = process.communicate()
        return ProcessResult(
            pid=process.pid,
            exit_code=process.returncode,
            stdout=decode_output(stdout, stdout_encoding, errors="replace"),
            stderr=decode_output(stderr, stderr_encoding, errors="replace"),
        )

    def can_run(self, executable: Any, *, working_directory: str | None = None) -> bool:
        return get_executable_path(str(executable), working_directory, platform=self._platform) is not None

    def kill_pid(self, pid: int, sig: int = signal.SIGTERM) -> bool:
        try:
            os.kill(pid, sig)
        except OSError:
            return False
        return True

    def _prepare(
        self,
        command: Command,
        working_directory: str | None,
        run_in_shell: bool,
    ) -> tuple[list[str], str]:
        """Return the raw command and the executable to launch."""
        args = [str(element) for element in command]
        if not args:
            raise ValueError("command cannot be empty")
        if run_in_shell:
            return args, args[0]
        executable = get_executable_path(args[0], working_directory, platform=self._platform)
        if executable is None:
            raise ProcessException(args[0], args[1:], f"Cannot find executable for {args[0]}.", 2)
        return args, executable

    async def _spawn(
        self,
        command: Command,
        working_directory: str | None,
        run_in_shell: bool,
        kwargs: dict[str, Any],
    ) -> asyncio.subprocess.Process:
        args, executable = self._prepare(command, working_directory, run_in_shell)
        try:
            if run_in_shell:
                return await asyncio.create_subprocess_shell(" ".join(args), **kwargs)
            return await asyncio.create_subprocess_exec(executable, *args[1:], **kwargs)
        except OSError as e:
            raise ProcessException(args[0], args[1:], str(e), e.errno or 0, cause=e) from e


def _environment(
    environment: Mapping[str, str] | None,
    include_parent_environment: bool,
) -> dict[str, str] | None:
    if include_parent_environment:
        if environment is None:
            return None
        return {**os.environ, **environment}
    return dict(environment or {})


__all__ = ["LocalProcess", "LocalProcessManager"]
