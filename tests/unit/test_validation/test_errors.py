"""
Unit tests for error classification and the error handling helpers.
"""

import logging

import pytest

from perfwatch.validation import (
    CounterBindError,
    CounterReadError,
    ErrorKind,
    ErrorSeverity,
    ProcessVanishedError,
    RootProcessExitedError,
    ValidationError,
    classify_error,
    handle_cli_error,
    handle_counter_error,
    handle_error,
    validate_enum_choice,
    validate_positive_integer,
)


@pytest.mark.unit
class TestClassifyError:
    """Which failures the sampling loop survives."""

    @pytest.mark.parametrize(
        "error",
        [
            CounterBindError("no such instance"),
            CounterReadError("read failed"),
            ProcessVanishedError(42),
            OSError("handle closed"),
            ValueError("garbage"),
        ],
    )
    def test_recoverable(self, error):
        assert classify_error(error) is ErrorKind.RECOVERABLE

    def test_root_exit_is_terminal(self):
        assert classify_error(RootProcessExitedError(1)) is ErrorKind.TERMINAL

    @pytest.mark.parametrize("error", [MemoryError(), KeyboardInterrupt(), SystemExit(1)])
    def test_fatal(self, error):
        assert classify_error(error) is ErrorKind.FATAL

    def test_vanished_error_keeps_pid(self):
        error = ProcessVanishedError(42)
        assert error.pid == 42
        assert "42" in str(error)


@pytest.mark.unit
class TestErrorHandlers:
    """Logging and re-raising behaviour of the handle_* helpers."""

    def test_handle_error_reraises_by_default(self):
        with pytest.raises(ValueError):
            handle_error(ValueError("bad"), "testing")

    def test_handle_counter_error_logs_without_raising(self, caplog):
        with caplog.at_level(logging.ERROR):
            handle_counter_error(CounterReadError("read failed"), "reading counters")

        assert "Error in counters reading counters: read failed" in caplog.text

    def test_handle_error_warning_severity(self, caplog):
        with caplog.at_level(logging.WARNING):
            handle_error(OSError("x"), "ctx", severity=ErrorSeverity.WARNING, reraise=False)

        assert caplog.records[-1].levelno == logging.WARNING

    def test_handle_cli_error_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            handle_cli_error(ValueError("bad"), "argument parsing", exit_code=3)

        assert exc_info.value.code == 3


@pytest.mark.unit
class TestValidators:
    """Field validators shared by the configuration layer."""

    def test_positive_integer_bounds(self):
        assert validate_positive_integer("7", min_value=0) == 7
        with pytest.raises(ValidationError):
            validate_positive_integer(0)
        with pytest.raises(ValidationError):
            validate_positive_integer(11, max_value=10)

    def test_enum_choice_case_insensitive(self):
        assert validate_enum_choice("warning", ["DEBUG", "WARNING"], case_sensitive=False) == "WARNING"
        with pytest.raises(ValidationError):
            validate_enum_choice("warning", ["DEBUG", "WARNING"])
