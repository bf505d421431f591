"""Logging utilities for packwatch.

This module provides structured logging with a colored console handler and
an optional rotating log file. Only the root ``packwatch`` logger carries
handlers; module loggers obtained with ``get_logger(__name__)`` propagate
to it.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from packwatch.constants import (
    DEFAULT_CONSOLE_LOG_LEVEL,
    DEFAULT_LOG_LEVEL,
    LOG_BACKUP_COUNT,
    LOG_COLORS,
    LOG_CONSOLE_DATE_FORMAT,
    LOG_CONSOLE_FORMAT,
    LOG_FILE_DATE_FORMAT,
    LOG_FILE_FORMAT,
    LOG_FILE_NAME,
    LOG_MAX_FILE_SIZE_BYTES,
)

if TYPE_CHECKING:
    from packwatch.config import GlobalConfig

ROOT_LOGGER_NAME = "packwatch"

# Global registry to prevent duplicate logger wrappers
_logger_instances: dict[str, PackwatchLogger] = {}

# Lock for thread-safe logger operations
_logger_lock = threading.Lock()


class LoggingError(Exception):
    """Base exception for logging errors."""


class LogConfigurationError(LoggingError):
    """Error in logging configuration."""


class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support for console output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors.

        Args:
            record: The log record to format

        Returns:
            Formatted log message with color codes

        """
        if record.levelname in LOG_COLORS:
            color = LOG_COLORS[record.levelname]
            reset = LOG_COLORS["RESET"]
            original_levelname = record.levelname
            record.levelname = f"{color}{record.levelname}{reset}"
            try:
                return super().format(record)
            finally:
                record.levelname = original_levelname

        return super().format(record)


class PackwatchLogger:
    """Logger manager for packwatch."""

    def __init__(self, name: str = ROOT_LOGGER_NAME) -> None:
        """Initialize logger with given name.

        Args:
            name: Logger name

        """
        self._name = name
        self.logger = logging.getLogger(name)
        self._console_handler: logging.StreamHandler | None = None
        self._file_handler: logging.handlers.RotatingFileHandler | None = None

        if name == ROOT_LOGGER_NAME:
            self.logger.setLevel(logging.DEBUG)
            if not self.logger.handlers:
                self._setup_console_handler()

    @property
    def name(self) -> str:
        """Logger name."""
        return self._name

    def _setup_console_handler(self) -> None:
        """Set up console handler with colors."""
        self._console_handler = logging.StreamHandler(sys.stdout)
        self._console_handler.setFormatter(
            ColoredFormatter(
                LOG_CONSOLE_FORMAT, datefmt=LOG_CONSOLE_DATE_FORMAT
            )
        )
        self._console_handler.setLevel(logging.WARNING)
        self.logger.addHandler(self._console_handler)

    def setup_file_logging(self, log_file: Path, level: str = "DEBUG") -> None:
        """Set up file logging with rotation.

        Args:
            log_file: Path to log file
            level: Logging level for file output

        Raises:
            LogConfigurationError: If file logging setup fails

        """
        with _logger_lock:
            if self._file_handler is not None:
                self.logger.removeHandler(self._file_handler)
                self._file_handler.close()
                self._file_handler = None

            try:
                log_file.parent.mkdir(parents=True, exist_ok=True)
                handler = logging.handlers.RotatingFileHandler(
                    log_file,
                    maxBytes=LOG_MAX_FILE_SIZE_BYTES,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
            except OSError as e:
                raise LogConfigurationError(
                    f"Failed to setup file logging: {e}"
                ) from e

            handler.setFormatter(
                logging.Formatter(
                    LOG_FILE_FORMAT, datefmt=LOG_FILE_DATE_FORMAT
                )
            )
            handler.setLevel(getattr(logging, level.upper(), logging.INFO))
            self.logger.addHandler(handler)
            self._file_handler = handler

    def set_level(self, level: str) -> None:
        """Set logging level for the file handler.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

        """
        if self._file_handler:
            self._file_handler.setLevel(
                getattr(logging, level.upper(), logging.INFO)
            )

    def set_console_level(self, level: str) -> None:
        """Set console logging level.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

        """
        if self._console_handler:
            self._console_handler.setLevel(
                getattr(logging, level.upper(), logging.WARNING)
            )

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        if self.logger.isEnabledFor(logging.INFO):
            self.logger.info(message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        if self.logger.isEnabledFor(logging.WARNING):
            self.logger.warning(message, *args, **kwargs)

    def error(
        self, message: str, *args: Any, exc_info: bool = False, **kwargs: Any
    ) -> None:
        """Log error message.

        Args:
            message: Log message
            *args: Message arguments
            exc_info: Include exception info
            **kwargs: Message keyword arguments

        """
        if self.logger.isEnabledFor(logging.ERROR):
            self.logger.error(message, *args, exc_info=exc_info, **kwargs)

    def exception(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""
        if self.logger.isEnabledFor(logging.ERROR):
            self.logger.exception(message, *args, **kwargs)


def get_logger(name: str = ROOT_LOGGER_NAME) -> PackwatchLogger:
    """Get logger instance with singleton pattern.

    Args:
        name: Logger name, usually ``__name__`` of the calling module

    Returns:
        Logger instance

    """
    with _logger_lock:
        if name not in _logger_instances:
            _logger_instances[name] = PackwatchLogger(name)
        return _logger_instances[name]


def configure_logging(
    global_config: GlobalConfig, enable_file_logging: bool = True
) -> PackwatchLogger:
    """Apply console/file levels and log directory from the global config.

    Args:
        global_config: Loaded global configuration
        enable_file_logging: Whether to attach the rotating file handler

    Returns:
        The root packwatch logger

    """
    root = get_logger(ROOT_LOGGER_NAME)
    root.set_console_level(
        str(global_config.get("console_log_level", DEFAULT_CONSOLE_LOG_LEVEL))
    )
    file_level = str(global_config.get("log_level", DEFAULT_LOG_LEVEL))
    if enable_file_logging:
        log_file = Path(global_config["directory"]["logs"]) / LOG_FILE_NAME
        root.setup_file_logging(log_file, file_level)
    else:
        root.set_level(file_level)
    return root


def clear_logger_state() -> None:
    """Clear global logger state for testing purposes."""
    with _logger_lock:
        for instance in _logger_instances.values():
            for handler in instance.logger.handlers[:]:
                instance.logger.removeHandler(handler)
                handler.close()
        _logger_instances.clear()


# Root logger instance; file logging is enabled by configure_logging()
logger = get_logger(ROOT_LOGGER_NAME)
