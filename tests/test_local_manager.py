"""
Tests for LocalProcessManager against real processes.
"""
import os
import signal
import sys

import pytest

from process_replay.errors import ProcessException
from process_replay.interface import LocalProcessManager, ProcessStartMode
from process_replay.record_replay import CommandElement

PYTHON = sys.executable


def py(code: str) -> list[str]:
    return [PYTHON, "-c", code]


@pytest.fixture
def manager() -> LocalProcessManager:
    return LocalProcessManager()


class TestRun:
    """Test run and run_sync."""

    @pytest.mark.asyncio
    async def test_run(self, manager):
        result = await manager.run(
            py("import sys; print('foo'); print('bar', file=sys.stderr); sys.exit(3)"),
            stdout_encoding="utf-8",
            stderr_encoding="utf-8",
        )

        assert result.stdout.strip() == "foo"
        assert result.stderr.strip() == "bar"
        assert result.exit_code == 3
        assert result.pid > 0

    @pytest.mark.asyncio
    async def test_run_bytes(self, manager):
        result = await manager.run(
            py("import sys; sys.stdout.buffer.write(bytes([0, 255]))"),
            stdout_encoding=None,
        )

        assert result.stdout == b"\x00\xff"

    def test_run_sync(self, manager):
        result = manager.run_sync(py("print('sync')"), stdout_encoding="utf-8")

        assert result.stdout.strip() == "sync"
        assert result.exit_code == 0

    def test_working_directory(self, manager, tmp_path):
        result = manager.run_sync(py("import os; print(os.getcwd())"), working_directory=str(tmp_path))

        assert os.path.samefile(result.stdout.strip(), tmp_path)

    def test_environment_merged_with_parent(self, manager, monkeypatch):
        monkeypatch.setenv("PROCESS_REPLAY_PARENT", "inherited")
        code = "import os; print(os.environ.get('PROCESS_REPLAY_PARENT'), os.environ.get('CHILD'))"

        result = manager.run_sync(py(code), environment={"CHILD": "set"})

        assert result.stdout.split() == ["inherited", "set"]

    def test_environment_without_parent(self, manager, monkeypatch):
        monkeypatch.setenv("PROCESS_REPLAY_PARENT", "inherited")
        code = "import os; print(os.environ.get('PROCESS_REPLAY_PARENT'))"

        result = manager.run_sync(py(code), environment={"CHILD": "set"}, include_parent_environment=False)

        assert result.stdout.strip() == "None"

    def test_command_element_passes_raw_value(self, manager):
        element = CommandElement("raw-value", sanitizer=lambda raw: "sanitized")

        result = manager.run_sync(py("import sys; print(sys.argv[1])") + [element])

        assert result.stdout.strip() == "raw-value"

    @pytest.mark.skipif(os.name != "posix", reason="POSIX shell syntax")
    def test_run_in_shell(self, manager):
        result = manager.run_sync(["echo", "$((1 + 2))"], run_in_shell=True)

        assert result.stdout.strip() == "3"

    def test_missing_executable(self, manager):
        with pytest.raises(ProcessException, match="Cannot find executable for no-such-binary-xyz"):
            manager.run_sync(["no-such-binary-xyz", "--flag"])

    @pytest.mark.asyncio
    async def test_missing_executable_async(self, manager):
        with pytest.raises(ProcessException) as exc_info:
            await manager.run(["no-such-binary-xyz"])

        assert exc_info.value.error_code == 2

    def test_empty_command(self, manager):
        with pytest.raises(ValueError):
            manager.run_sync([])


class TestStart:
    """Test started processes."""

    @pytest.mark.asyncio
    async def test_start_streams_output(self, manager):
        process = await manager.start(py("print('streamed')"))

        stdout = await process.stdout.read()
        exit_code = await process.wait()

        assert stdout.strip() == b"streamed"
        assert exit_code == 0
        assert process.returncode == 0

    @pytest.mark.asyncio
    async def test_kill(self, manager):
        process = await manager.start(py("import time; time.sleep(30)"))

        assert process.kill() is True
        exit_code = await process.done()

        assert exit_code != 0

    @pytest.mark.asyncio
    async def test_detached_has_no_output(self, manager):
        process = await manager.start(py("print('hidden')"), mode=ProcessStartMode.DETACHED)

        assert await process.stdout.read() == b""
        await process.wait()

    @pytest.mark.skipif(os.name != "posix", reason="POSIX signals")
    @pytest.mark.asyncio
    async def test_kill_pid(self, manager):
        process = await manager.start(py("import time; time.sleep(30)"))

        assert manager.kill_pid(process.pid, signal.SIGTERM) is True
        assert await process.done() == -signal.SIGTERM


class TestCanRun:
    """Test can_run."""

    def test_can_run_python(self, manager):
        assert manager.can_run(PYTHON) is True

    def test_cannot_run_missing(self, manager):
        assert manager.can_run("no-such-binary-xyz") is False
