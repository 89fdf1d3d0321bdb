"""
Validation and error handling for the perfwatch package.

This module provides input validation for configuration values and the
error types shared by the counter, discovery and sampling layers.
"""

from .exceptions import (
    CounterBindError,
    CounterError,
    CounterReadError,
    ErrorKind,
    ErrorSeverity,
    ProcessVanishedError,
    RootProcessExitedError,
    ValidationError,
    classify_error,
    handle_cli_error,
    handle_config_error,
    handle_counter_error,
    handle_error,
)

from .validators import (
    validate_boolean,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_integer,
    validate_string_list,
)

__all__ = [
    # Errors
    "CounterBindError",
    "CounterError",
    "CounterReadError",
    "ErrorKind",
    "ErrorSeverity",
    "ProcessVanishedError",
    "RootProcessExitedError",
    "ValidationError",
    "classify_error",
    "handle_cli_error",
    "handle_config_error",
    "handle_counter_error",
    "handle_error",
    # Validators
    "validate_boolean",
    "validate_enum_choice",
    "validate_non_empty_string",
    "validate_positive_integer",
    "validate_string_list",
]
