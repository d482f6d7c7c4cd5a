# src/taskbell/logging_setup.py

from __future__ import annotations

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytz

LOG_FILE_NAME = "taskbell.log"

# Library loggers capped at these levels everywhere (file included).
_QUIET_LOGGERS: dict[str, int] = {
    "apscheduler": logging.WARNING,
    "asyncio": logging.INFO,
}

# Background components: only WARNING+ reaches the interactive console.
_BACKGROUND_PREFIXES = (
    "taskbell.tasks.sweeper",
    "taskbell.notifications.registry",
)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the console prompt readable:
    - taskbell logs pass, except background sweeps below WARNING
    - APScheduler only WARNING+ (it logs every job run)
    - captured Python warnings and other 3rd party only ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith("taskbell."):
            if name.startswith(_BACKGROUND_PREFIXES):
                return record.levelno >= logging.WARNING
            return True

        if name.startswith("apscheduler"):
            return record.levelno >= logging.WARNING

        return record.levelno >= logging.ERROR


class _DisplayTimeFormatter(logging.Formatter):
    """Stamps records in the display timezone so log lines match task times."""

    def __init__(self, fmt: str, datefmt: str, timezone_name: str | None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._tz = pytz.timezone(timezone_name) if timezone_name else None

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        if self._tz is None:
            return super().formatTime(record, datefmt)
        stamp = datetime.fromtimestamp(record.created, tz=pytz.utc).astimezone(self._tz)
        return stamp.strftime(datefmt or self.default_time_format)


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskbell",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    timezone_name: str | None = None,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Console handler (filtered, for interactive use) + rotating file handler (everything).

    Call this ONCE, very early (before first logger.info). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = _DisplayTimeFormatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        "%Y-%m-%d %H:%M:%S",
        timezone_name,
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # warnings.warn(...) -> 'py.warnings' logger
    logging.captureWarnings(True)

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    return log_file
