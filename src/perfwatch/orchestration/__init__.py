"""
Run orchestration: log setup and the sample log sink.
"""

from .log_manager import LOG_FORMAT, LogManager, configure_console_logging
from .sample_log import (
    COLUMN_SEPARATOR,
    SAMPLE_LOGGER_NAME,
    HeaderRotatingFileHandler,
    SampleLog,
    SampleSink,
    format_header,
    format_row,
)

__all__ = [
    "COLUMN_SEPARATOR",
    "LOG_FORMAT",
    "LogManager",
    "HeaderRotatingFileHandler",
    "SAMPLE_LOGGER_NAME",
    "SampleLog",
    "SampleSink",
    "configure_console_logging",
    "format_header",
    "format_row",
]
