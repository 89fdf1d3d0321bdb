"""
Log management.

This module sets up the two log streams of a run:
- the diagnostic log (console + `perfwatch_<pid>.log`) used by every module
  through `logging.getLogger(__name__)`;
- the sample log (`samples_<pid>.csv`, rotated) fed by SampleLog, optionally
  echoed to the console.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..models.config import LoggingConfig
from .sample_log import SAMPLE_LOGGER_NAME, HeaderRotatingFileHandler, SampleLog

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_console_logging(level: str = "INFO") -> None:
    """Install the console handler used before the configuration is known."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )


class LogManager:
    """
    Owns the handlers of one monitoring run and closes them at the end.
    """

    def __init__(self, config: LoggingConfig):
        self.config = config
        self.handlers: List[logging.Handler] = []
        self.sample_logger: Optional[logging.Logger] = None

    def diagnostic_log_path(self, pid: int) -> Path:
        return self.config.log_dir / f"perfwatch_{pid}.log"

    def sample_log_path(self, pid: int) -> Path:
        return self.config.log_dir / f"samples_{pid}.csv"

    def open(self, pid: int) -> SampleLog:
        """
        Configure logging for a run attached to `pid`.

        Returns:
            The sample sink to hand to the sampling engine

        Raises:
            OSError: If a log file cannot be opened
        """
        self.config.log_dir.mkdir(parents=True, exist_ok=True)
        level = getattr(logging, self.config.level.upper(), logging.INFO)

        file_handler = logging.FileHandler(self.diagnostic_log_path(pid), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logging.basicConfig(level=level, handlers=[console_handler, file_handler], force=True)
        self.handlers.extend([console_handler, file_handler])

        sample_logger = logging.getLogger(SAMPLE_LOGGER_NAME)
        sample_logger.setLevel(logging.INFO)
        sample_logger.propagate = False
        self._detach_handlers(sample_logger)

        sample_handler = HeaderRotatingFileHandler(
            self.sample_log_path(pid),
            maxBytes=self.config.sample_log_max_bytes,
            backupCount=self.config.sample_log_backup_count,
            encoding="utf-8",
        )
        sample_handler.setFormatter(logging.Formatter("%(message)s"))
        sample_logger.addHandler(sample_handler)
        self.handlers.append(sample_handler)

        if self.config.console_echo:
            echo_handler = logging.StreamHandler(sys.stdout)
            echo_handler.setFormatter(logging.Formatter("%(message)s"))
            sample_logger.addHandler(echo_handler)
            self.handlers.append(echo_handler)

        self.sample_logger = sample_logger
        logger.info(f"Samples for process {pid} will be written to {self.sample_log_path(pid)}")
        return SampleLog(sample_logger, value_width=self.config.value_width)

    def close(self) -> None:
        """Detach and close every handler opened by this manager."""
        if self.sample_logger is not None:
            self._detach_handlers(self.sample_logger)
        root_logger = logging.getLogger()
        for handler in self.handlers:
            if handler in root_logger.handlers:
                root_logger.removeHandler(handler)
            try:
                handler.close()
            except Exception as e:
                logger.warning(f"Failed to close log handler {handler}: {e}")
        self.handlers.clear()

    @staticmethod
    def _detach_handlers(target: logging.Logger) -> None:
        for handler in list(target.handlers):
            target.removeHandler(handler)
            handler.close()
