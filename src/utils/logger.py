"""Console logging for the reminder hub.

All modules log through the helpers at the bottom of this file so that the
HTTP server, the polling loop and the CLI share one colored stdout stream.
"""

import logging
import sys
from datetime import datetime
from typing import Optional
from enum import Enum


LOGGER_NAME = "reminder_hub"


class LogLevel(Enum):
    """Log levels for the application."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ColoredFormatter(logging.Formatter):
    """Formatter that prefixes messages with a timestamp and colored level."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m',
        'BOLD': '\033[1m',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def _paint(self, key: str, text: str) -> str:
        if not self.use_colors:
            return text
        return f"{self.COLORS[key]}{text}{self.COLORS['RESET']}"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        prefix = self._paint('BOLD', f"[LOG {timestamp}]")

        if record.levelname == 'INFO':
            formatted_msg = f"{prefix} {record.getMessage()}"
        else:
            level = self._paint(record.levelname, f"[{record.levelname}]")
            formatted_msg = f"{prefix} {level} {record.getMessage()}"

        if record.exc_info:
            formatted_msg = f"{formatted_msg}\n{self.formatException(record.exc_info)}"
        return formatted_msg


class AppLogger:
    """Application logger (singleton)."""

    _instance: Optional['AppLogger'] = None
    _logger: Optional[logging.Logger] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._logger is None:
            self._setup_logger()

    def _setup_logger(self, level: str = "INFO"):
        self._logger = logging.getLogger(LOGGER_NAME)
        self._logger.setLevel(getattr(logging, level))
        self._logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, level))
        console_handler.setFormatter(ColoredFormatter(use_colors=sys.stdout.isatty()))
        self._logger.addHandler(console_handler)

        self._logger.propagate = False

    def set_level(self, level: str):
        """Set the logging level."""
        if self._logger:
            self._logger.setLevel(getattr(logging, level.upper()))
            for handler in self._logger.handlers:
                handler.setLevel(getattr(logging, level.upper()))

    def log(self, message: str, level: LogLevel = LogLevel.INFO, exc_info: bool = False):
        """Log a message with the specified level."""
        if self._logger:
            log_func = getattr(self._logger, level.value.lower())
            log_func(message, exc_info=exc_info)

    def debug(self, message: str):
        self.log(message, LogLevel.DEBUG)

    def info(self, message: str):
        self.log(message, LogLevel.INFO)

    def warning(self, message: str):
        self.log(message, LogLevel.WARNING)

    def error(self, message: str, exc_info: bool = False):
        self.log(message, LogLevel.ERROR, exc_info=exc_info)


# Global logger instance
logger = AppLogger()


def setup_logging(level: str = "INFO"):
    """Set up logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.set_level(level)
    logger.debug(f"Logger initialized at level {level.upper()}")


def log_info(message: str):
    logger.info(message)


def log_debug(message: str):
    logger.debug(message)


def log_warning(message: str):
    logger.warning(message)


def log_error(message: str, exc_info: bool = False):
    """Log an error message, optionally with the active traceback."""
    logger.error(message, exc_info=exc_info)
