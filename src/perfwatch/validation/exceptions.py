"""
Exception types and error handling helpers.

This module provides the validation error used by the configuration layer,
the counter error family raised by counter tables, and a small set of
helpers that log errors consistently before optionally re-raising them.

Counter errors are split into the two classes the sampling engine cares about:
- recoverable errors (a counter could not be bound or read, a process vanished)
  which trigger a full re-initialization after a backoff delay;
- terminal conditions (the monitored root process exited) which end the run
  cleanly.
"""

import logging
import sys
from enum import Enum
from typing import Any, NoReturn, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorKind(Enum):
    """How the sampling loop reacts to an exception raised during a tick."""
    RECOVERABLE = "recoverable"
    TERMINAL = "terminal"
    FATAL = "fatal"


class ValidationError(Exception):
    """
    Exception raised when validation fails.

    This is the main exception type used by the configuration layer.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class CounterError(Exception):
    """Base class for failures of an OS performance counter."""

    def __init__(self, message: str, spec: Any = None):
        super().__init__(message)
        self.spec = spec


class CounterBindError(CounterError):
    """A counter could not be bound (unknown category, instance or process)."""


class CounterReadError(CounterError):
    """A bound counter failed to produce a reading."""


class ProcessVanishedError(CounterError):
    """A process exited between being enumerated and being queried."""

    def __init__(self, pid: int, message: Optional[str] = None):
        super().__init__(message or f"Process {pid} no longer exists")
        self.pid = pid


class RootProcessExitedError(Exception):
    """The monitored root process is gone; sampling must stop."""

    def __init__(self, pid: int):
        super().__init__(f"Monitored process {pid} has exited")
        self.pid = pid


def classify_error(error: BaseException) -> ErrorKind:
    """
    Decide whether the sampling loop may recover from an exception.

    Args:
        error: The exception raised while initializing or reading counters

    Returns:
        TERMINAL when the root process is gone, FATAL for conditions the
        engine must not try to survive, RECOVERABLE for everything else.
    """
    if isinstance(error, RootProcessExitedError):
        return ErrorKind.TERMINAL
    if isinstance(error, (MemoryError, KeyboardInterrupt, SystemExit)):
        return ErrorKind.FATAL
    return ErrorKind.RECOVERABLE


def handle_error(
    error: Exception,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Handle errors with consistent logging and optional re-raising.

    Args:
        error: The exception that occurred
        context: Context description of where the error occurred
        severity: Severity level for logging
        reraise: Whether to re-raise the exception after logging
        logger: Logger instance to use (defaults to module logger)
    """
    effective_logger = logger or globals()['logger']

    error_msg = f"Error in {context}: {error}"

    if isinstance(severity, str):
        severity_str = severity.lower()
    else:
        severity_str = severity.value

    if severity_str == "debug":
        effective_logger.debug(error_msg, exc_info=True)
    elif severity_str == "info":
        effective_logger.info(error_msg)
    elif severity_str == "warning":
        effective_logger.warning(error_msg)
    elif severity_str == "error":
        effective_logger.error(error_msg, exc_info=True)
    elif severity_str == "critical":
        effective_logger.critical(error_msg, exc_info=True)

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Handle configuration-related errors."""
    handle_error(error, f"config {context}", **kwargs)


def handle_counter_error(error: Exception, context: str, **kwargs) -> None:
    """Handle performance counter errors. Never re-raises unless asked to."""
    kwargs.setdefault("reraise", False)
    kwargs.setdefault("severity", ErrorSeverity.ERROR)
    handle_error(error, f"counters {context}", **kwargs)


def handle_cli_error(error: Exception, context: str, **kwargs) -> NoReturn:
    """Handle CLI-related errors by logging them and exiting."""
    exit_code = kwargs.pop('exit_code', 1)

    severity = kwargs.pop('severity', ErrorSeverity.ERROR)
    handle_error(error, f"CLI {context}", severity=severity, reraise=False, **kwargs)

    sys.exit(exit_code)
