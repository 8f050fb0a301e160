"""
Tests for the structured logging module.
"""

import json
import logging

import pytest

from process_replay.config import LoggingConfig, Settings, configure
from process_replay.logging import (
    DrainLog,
    InvocationLog,
    JSONFormatter,
    LogContext,
    StructuredLogger,
    Timer,
    configure_logging,
    get_logger,
    timed,
)


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict_skips_none(self):
        ctx = LogContext(manager="recording", extra={"custom": "value"})

        d = ctx.to_dict()

        assert d == {"manager": "recording", "custom": "value"}

    def test_with_update(self):
        ctx = LogContext(manager="replay", recording_dir="/tmp/rec")
        updated = ctx.with_update(operation="run", extra={"new": "value"})

        assert updated.manager == "replay"
        assert updated.recording_dir == "/tmp/rec"
        assert updated.operation == "run"
        assert updated.extra == {"new": "value"}
        assert ctx.operation is None


class TestLogRecords:
    """Test log record dataclasses."""

    def test_invocation_log(self):
        log = InvocationLog(operation="run", command=["echo", "foo"], pid=12, exit_code=0)

        d = log.to_dict()

        assert d["operation"] == "run"
        assert d["command"] == ["echo", "foo"]
        assert d["exit_code"] == 0
        assert "basename" not in d
        assert "timestamp" in d

    def test_drain_log(self):
        log = DrainLog(waited_seconds=0.04, daemons=[7], not_responding=[])

        assert log.to_dict() == {"waited_seconds": 0.04, "daemons": [7], "not_responding": []}


class TestStructuredLogger:
    """Test StructuredLogger."""

    def test_create_logger(self):
        logger = StructuredLogger("test_pr_create", level="DEBUG")

        assert logger.name == "test_pr_create"
        assert logger.context == LogContext()

    def test_scoped_context(self):
        logger = StructuredLogger("test_pr_scoped")

        with logger.scoped(manager="recording") as ctx:
            assert ctx.manager == "recording"
            assert logger.context.manager == "recording"

        assert logger.context.manager is None

    def test_bind_shares_output(self):
        logger = StructuredLogger("test_pr_bind")
        bound = logger.bind(manager="replay")

        assert bound.context.manager == "replay"
        assert logger.context.manager is None
        assert bound._logger is logger._logger

    def test_log_invocation(self, caplog):
        logger = StructuredLogger("test_pr_invocation", level="DEBUG").bind(manager="recording")

        with caplog.at_level(logging.DEBUG, logger="test_pr_invocation"):
            logger.log_invocation(InvocationLog(operation="start", command=["sleep", "1"], pid=9))

        assert len(caplog.records) == 1
        message = caplog.records[0].getMessage()
        assert message.startswith("start: sleep 1")
        assert "manager=recording" in message
        assert "pid=9" in message

    def test_log_drain_levels(self, caplog):
        logger = StructuredLogger("test_pr_drain")

        with caplog.at_level(logging.INFO, logger="test_pr_drain"):
            logger.log_drain(DrainLog(waited_seconds=0.02))
            logger.log_drain(DrainLog(waited_seconds=0.04, daemons=[5], not_responding=[5]))

        assert [r.levelno for r in caplog.records] == [logging.INFO, logging.WARNING]
        assert "1 not responding" in caplog.records[1].getMessage()

    def test_json_output(self, caplog):
        logger = StructuredLogger("test_pr_json", json_output=True)

        with caplog.at_level(logging.INFO, logger="test_pr_json"):
            logger.info("hello", pid=3)

        data = json.loads(caplog.records[0].getMessage())
        assert data == {"message": "hello", "pid": 3}

    def test_log_error(self, caplog):
        from process_replay.errors import NoMatchingInvocationError

        logger = StructuredLogger("test_pr_error")

        with caplog.at_level(logging.ERROR, logger="test_pr_error"):
            logger.log_error(NoMatchingInvocationError("sing", ["ooh"]))

        assert "error_code=ERR_3001" in caplog.records[0].getMessage()


class TestFormatters:
    """Test log formatters."""

    def test_json_formatter_merges_message(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, '{"message": "hi", "pid": 1}', None, None)

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "hi"
        assert data["pid"] == 1

    def test_json_formatter_plain_message(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "plain", None, None)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "plain"


class TestTiming:
    """Test timing utilities."""

    def test_timer_basic(self):
        timer = Timer()
        elapsed = timer.stop()

        assert elapsed >= 0
        assert timer.elapsed == elapsed

    def test_timed_context_manager(self):
        with timed() as timer:
            pass

        assert timer.end_time is not None


class TestGlobalLogger:
    """Test global logger helpers."""

    def test_get_logger_is_cached(self):
        assert get_logger() is get_logger()

    def test_configure_logging(self):
        logger = configure_logging(level="DEBUG")

        assert get_logger() is logger


@pytest.fixture
def fresh_logging(monkeypatch):
    monkeypatch.setattr("process_replay.logging._default_logger", None)
    monkeypatch.setattr("process_replay.config.settings._global_settings", None)
    stdlib_logger = logging.getLogger("process_replay")
    level = stdlib_logger.level
    yield
    stdlib_logger.setLevel(level)


class TestConfiguredLogger:
    """Test that the logging settings reach the default logger."""

    def test_level_and_format_from_settings(self, fresh_logging):
        configure(Settings(logging=LoggingConfig(level="DEBUG", format="json")))

        logger = get_logger("process_replay.configured")

        assert logger._logger.level == logging.DEBUG
        assert logger.json_output is True
        assert isinstance(logger._logger.handlers[0].formatter, JSONFormatter)

    def test_level_from_environment(self, fresh_logging, monkeypatch):
        monkeypatch.setenv("PROCESS_REPLAY_LOG_LEVEL", "warning")

        logger = get_logger("process_replay.from_env")

        assert logger._logger.level == logging.WARNING
        assert logger.json_output is False

    def test_configure_applies_level(self, fresh_logging):
        configure(logging=LoggingConfig(level="ERROR"))

        assert get_logger()._logger.level == logging.ERROR
