"""
Logging configuration for codescope.

Console logging to stderr, an optional rotating log file, and an optional
JSON format for machine consumption.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import Config

# Attributes every LogRecord has; anything else was passed via `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log heavily at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "sentence_transformers", "watchdog")


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as one JSON object per line.

        Fields passed with `extra=` (collection id, file path, ...) are
        copied into the object.
        """
        log_data = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = False,
    max_log_size_mb: int = 10,
    log_backups: int = 5,
) -> None:
    """
    Configure application-wide logging for codescope.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file for file output
        json_format: Use JSON formatting for logs
        max_log_size_mb: Maximum log file size in MB before rotation
        log_backups: Number of backup log files to keep

    Example:
        setup_logging(level="DEBUG", log_file=Path(".codescope/codescope.log"))
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = JsonFormatter() if json_format else logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(log_file),
                maxBytes=max_log_size_mb * 1024 * 1024,
                backupCount=log_backups,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"Failed to set up file logging: {e}. Using console only.")

    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(
        f"Logging initialized: level={level}, "
        f"file={log_file or 'disabled'}, "
        f"format={'JSON' if json_format else 'text'}"
    )


def setup_logging_from_config(config: Config, debug: bool = False) -> None:
    """
    Configure logging from the [logging] section of a project config.

    Args:
        config: Project configuration
        debug: Force DEBUG level regardless of configuration
    """
    level = "DEBUG" if debug else config.get("logging", "level", default="INFO")
    log_file = config.get("logging", "file")
    if log_file:
        log_file = Path(log_file)
        if not log_file.is_absolute():
            log_file = config.project_root / log_file

    setup_logging(
        level=level,
        log_file=log_file,
        json_format=bool(config.get("logging", "json", default=False)),
    )
