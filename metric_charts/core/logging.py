"""Logging System.

This module provides logging configuration for metric-charts.

Features:
- Daily rotating log files with TimedRotatingFileHandler
- Configurable log level and format via Config
- Log cleanup for old files

Log files are stored in the configured log directory with the format:
    metric-charts-YYYY-MM-DD.log

Example usage:
    from metric_charts.core.logging import setup_logging, get_logger, LogManager

    logger = setup_logging(Path.cwd())
    logger.info("Loading templates")

    # Module loggers are children of the package logger
    get_logger("metric_charts.core.template").debug("Resolving curves")

    LogManager(Path.cwd()).cleanup_old_logs(keep_days=30)
"""

from __future__ import annotations

import logging
import re
import sys
from datetime import datetime, timedelta
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from metric_charts.core.config import CONFIG_FILE_NAME, Config, load_config


# =============================================================================
# CONSTANTS
# =============================================================================

# Package logger; module loggers propagate to it
DEFAULT_LOGGER_NAME = "metric_charts"

LOG_FILE_PREFIX = "metric-charts"

LOG_FILE_EXTENSION = ".log"

# Days of rotated logs to keep
DEFAULT_BACKUP_COUNT = 30

# Attribute set on handlers attached by LogManager.setup
_OWNED_MARKER = "_metric_charts_owned"

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


# =============================================================================
# MODULE-LEVEL FUNCTIONS
# =============================================================================


def setup_logging(
    base_path: Path,
    config: Optional[Config] = None,
    name: str = DEFAULT_LOGGER_NAME,
    console: bool = True,
) -> logging.Logger:
    """Set up logging under the given base directory.

    Args:
        base_path: Directory holding metric-charts.yaml and the log directory.
        config: Optional Config, loaded from base_path if not provided.
        name: Logger name (default: metric_charts).
        console: Also log to stderr.

    Returns:
        Configured logger instance.
    """
    return LogManager(base_path, config).setup(name, console=console)


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Get a logger instance.

    The logger may not be configured yet if setup_logging has not been called.
    """
    return logging.getLogger(name)


# =============================================================================
# LOG MANAGER CLASS
# =============================================================================


class LogManager:
    """Manages log files for metric-charts.

    Attributes:
        base_path: Directory the log directory is relative to.
        config: Configuration in use.
        logs_path: Path to the log directory.
    """

    def __init__(self, base_path: Path, config: Optional[Config] = None):
        self.base_path = Path(base_path)
        self.config = config if config is not None else load_config(self.base_path / CONFIG_FILE_NAME)
        self.logs_path = self.base_path / self.config.logging.directory

    def setup(self, name: str = DEFAULT_LOGGER_NAME, console: bool = True) -> logging.Logger:
        """Attach a daily log file and, optionally, stderr output to a logger.

        Handlers from an earlier setup of the same logger are closed and
        replaced, so the logger always writes to this manager's directory.
        Handlers added by anyone else are left alone.

        Args:
            name: Logger name (default: metric_charts).
            console: Also log to stderr.

        Returns:
            Configured logger instance.
        """
        self.logs_path.mkdir(parents=True, exist_ok=True)

        logger = logging.getLogger(name)
        self.teardown(name)

        log_level = getattr(logging, self.config.logging.level, logging.INFO)
        logger.setLevel(log_level)
        formatter = logging.Formatter(self.config.logging.format)

        file_handler = TimedRotatingFileHandler(
            filename=self.get_log_file_path(),
            when="midnight",
            backupCount=DEFAULT_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        handlers: list[logging.Handler] = [file_handler]

        if console:
            handlers.append(logging.StreamHandler(sys.stderr))

        for handler in handlers:
            handler.setLevel(log_level)
            handler.setFormatter(formatter)
            setattr(handler, _OWNED_MARKER, True)
            logger.addHandler(handler)

        return logger

    @staticmethod
    def teardown(name: str = DEFAULT_LOGGER_NAME) -> None:
        """Close and remove the handlers a previous setup attached."""
        logger = logging.getLogger(name)
        for handler in logger.handlers[:]:
            if getattr(handler, _OWNED_MARKER, False):
                handler.close()
                logger.removeHandler(handler)

    def get_log_file_path(self) -> Path:
        """Get today's log file path: <logs>/metric-charts-YYYY-MM-DD.log"""
        return self.logs_path / f"{LOG_FILE_PREFIX}-{datetime.now():%Y-%m-%d}{LOG_FILE_EXTENSION}"

    def list_log_files(self) -> list[Path]:
        """List current and rotated log files, oldest first."""
        if not self.logs_path.is_dir():
            return []

        return sorted(
            path for path in self.logs_path.glob(f"{LOG_FILE_PREFIX}-*")
            if log_file_date(path) is not None
        )

    def cleanup_old_logs(
        self,
        keep_days: int = DEFAULT_BACKUP_COUNT,
        now: Optional[datetime] = None,
    ) -> list[Path]:
        """Delete log files dated more than keep_days before now.

        Returns:
            Deleted paths. Files that cannot be deleted are skipped.
        """
        cutoff = (now or datetime.now()) - timedelta(days=keep_days)
        deleted = []

        for path in self.list_log_files():
            if log_file_date(path) >= cutoff:
                continue
            try:
                path.unlink()
            except OSError as e:
                get_logger(__name__).warning(f"Could not delete {path}: {e}")
                continue
            deleted.append(path)

        return deleted


def log_file_date(path: Path) -> Optional[datetime]:
    """Date a log file was started, taken from the first date in its name."""
    match = _DATE_RE.search(path.name)
    if match is None:
        return None

    try:
        return datetime.strptime(match.group(), "%Y-%m-%d")
    except ValueError:
        return None
