"""
Sample log sink.

Samples are written as comma/tab separated rows through a dedicated logger,
so destinations and rotation are plain logging handlers. A header line is
written whenever the column set grows, and every rolled-over file starts with
the header that was current at rollover.
"""

import logging
from abc import ABC, abstractmethod
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from ..sampling.sample import Sample

logger = logging.getLogger(__name__)

SAMPLE_LOGGER_NAME = "perfwatch.samples"
COLUMN_SEPARATOR = ",\t"
TIME_FORMAT = "%H:%M:%S"
HEADER_RECORD_FLAG = "sample_header"


def format_header(names: Sequence[str]) -> str:
    return COLUMN_SEPARATOR.join(names)


def format_row(sample: "Sample", value_width: int = 5) -> str:
    """
    Format a sample as one log row: the time, then every value as a fixed-width integer.
    """
    fields = [sample.timestamp.strftime(TIME_FORMAT)]
    fields.extend(
        f"{sample.values[name]:>{value_width}d}" for name in sample.column_names if name in sample.values
    )
    return COLUMN_SEPARATOR.join(fields)


class HeaderRotatingFileHandler(RotatingFileHandler):
    """
    A RotatingFileHandler that repeats the current header at the top of each new file.

    Records logged with `extra={"sample_header": True}` are header lines
    themselves and are written only once when they trigger a rollover.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.header: Optional[str] = None
        self._emitting_header = False

    def emit(self, record: logging.LogRecord) -> None:
        self._emitting_header = getattr(record, HEADER_RECORD_FLAG, False)
        try:
            super().emit(record)
        finally:
            self._emitting_header = False

    def doRollover(self) -> None:
        super().doRollover()
        if self.header and self.stream and not self._emitting_header:
            self.stream.write(self.header + self.terminator)
            self.flush()


class SampleSink(ABC):
    """Destination of header lines and over-threshold samples."""

    @abstractmethod
    def write_header(self, names: Sequence[str]) -> None:
        pass

    @abstractmethod
    def write_sample(self, sample: "Sample") -> None:
        pass


class SampleLog(SampleSink):
    """
    Writes headers and samples through the `perfwatch.samples` logger.

    Writes are fire-and-forget: handler errors are dealt with by the logging
    module and never reach the sampling loop.
    """

    def __init__(self, sample_logger: Optional[logging.Logger] = None, value_width: int = 5):
        self.logger = sample_logger or logging.getLogger(SAMPLE_LOGGER_NAME)
        self.value_width = value_width
        self.current_header: Optional[str] = None

    def write_header(self, names: Sequence[str]) -> None:
        line = format_header(names)
        self.current_header = line
        for handler in self.logger.handlers:
            if isinstance(handler, HeaderRotatingFileHandler):
                handler.header = line
        self.logger.info(line, extra={HEADER_RECORD_FLAG: True})

    def write_sample(self, sample: "Sample") -> None:
        self.logger.info(format_row(sample, self.value_width))
