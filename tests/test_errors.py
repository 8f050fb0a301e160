"""
Tests for the error taxonomy.
"""
import pytest

from process_replay.errors import (
    ConfigError,
    ConstructionError,
    ErrorCode,
    ErrorContext,
    InvalidConfigError,
    InvalidRecordingError,
    ManifestFormatError,
    MatchError,
    NoMatchingCanRunError,
    NoMatchingInvocationError,
    ProcessException,
    ProcessReplayError,
    RecordingDestinationError,
    UnsupportedOperationError,
)


class TestErrorCodes:
    """Test error code enumeration."""

    def test_error_codes_are_strings(self):
        assert ErrorCode.FORMAT_ERROR.value.startswith("ERR_")
        assert ErrorCode.NO_MATCHING_INVOCATION.value.startswith("ERR_")

    def test_error_codes_unique(self):
        values = [e.value for e in ErrorCode]
        assert len(values) == len(set(values))


class TestErrorContext:
    """Test error context."""

    def test_to_dict_merges_extra(self):
        ctx = ErrorContext(location="/tmp/rec", pid=42, extra={"basename": "000.echo.42"})

        d = ctx.to_dict()

        assert d["location"] == "/tmp/rec"
        assert d["pid"] == 42
        assert d["basename"] == "000.echo.42"


class TestProcessReplayError:
    """Test base error."""

    def test_create_error(self):
        error = ProcessReplayError("Something went wrong")

        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR

    def test_str_includes_code_and_location(self):
        error = ProcessReplayError("Test error", context=ErrorContext(location="/tmp/rec"))
        s = str(error)

        assert "ERR_9000" in s
        assert "Test error" in s
        assert "location=/tmp/rec" in s

    def test_to_dict(self):
        cause = OSError("disk full")
        error = ProcessReplayError("Test error", cause=cause)

        d = error.to_dict()

        assert d["error_type"] == "ProcessReplayError"
        assert d["code"] == "ERR_9000"
        assert d["cause"] == "disk full"


class TestConstructionErrors:
    """Test errors raised while constructing managers."""

    def test_recording_destination_error(self):
        error = RecordingDestinationError("/tmp/rec")

        assert isinstance(error, ConstructionError)
        assert error.code == ErrorCode.INVALID_DESTINATION
        assert error.location == "/tmp/rec"
        assert error.message == "Cannot record: /tmp/rec"

    def test_invalid_recording_error(self):
        cause = ManifestFormatError("Required field missing: pid")
        error = InvalidRecordingError("/tmp/rec", cause=cause)

        assert isinstance(error, ConstructionError)
        assert error.code == ErrorCode.INVALID_RECORDING
        assert error.cause is cause
        assert error.context.operation == "replay"


class TestFormatErrors:
    """Test manifest format errors."""

    def test_is_value_error(self):
        error = ManifestFormatError("Required field missing: basename")

        assert isinstance(error, ValueError)
        assert error.code == ErrorCode.FORMAT_ERROR


class TestInvocationErrors:
    """Test process invocation errors."""

    def test_process_exception(self):
        error = ProcessException("git", ["status", "--short"], "boom", 2)

        assert error.command == ["git", "status", "--short"]
        assert error.error_code == 2
        assert str(error) == "ProcessException: boom\n  Command: git status --short"

    def test_process_exception_default_message(self):
        error = ProcessException("git", error_code=13)

        assert error.message == "OS error code: 13"
        assert str(error).endswith("Command: git")

    def test_no_matching_invocation(self):
        error = NoMatchingInvocationError("sing", ["ooh"])

        assert isinstance(error, ProcessException)
        assert isinstance(error, MatchError)
        assert error.message == "No matching invocation found"
        assert error.executable == "sing"
        assert error.arguments == ["ooh"]

    def test_no_matching_can_run(self):
        error = NoMatchingCanRunError("marathon")

        assert isinstance(error, MatchError)
        assert isinstance(error, ValueError)
        assert error.code == ErrorCode.NO_MATCHING_CAN_RUN
        assert "marathon" in error.message


class TestOtherErrors:
    """Test unsupported operation and config errors."""

    def test_unsupported_operation(self):
        error = UnsupportedOperationError("kill_pid is not supported")

        assert isinstance(error, NotImplementedError)
        assert error.code == ErrorCode.UNSUPPORTED_OPERATION

    def test_invalid_config(self):
        error = InvalidConfigError("bad")

        assert isinstance(error, ConfigError)
        assert isinstance(error, ValueError)

    def test_catch_base_class(self):
        with pytest.raises(ProcessReplayError):
            raise NoMatchingCanRunError("marathon")
