"""Logging to the console and to a timestamped log file."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from awserver import dirs

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_ENV_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Request logging of the HTTP server is only shown when debugging.
_QUIET_LOGGERS = ("werkzeug",)

_LEVEL_NAMES = {logging.WARNING: "WARN", logging.CRITICAL: "ERROR"}
_LEVEL_COLORS = {
    logging.DEBUG: "\x1b[37m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[31m",
}
_RESET = "\x1b[0m"
_TAG = "_awserver_handler"


class _Formatter(logging.Formatter):
    def __init__(self, colored: bool) -> None:
        super().__init__(
            "[%(asctime)s][%(levelname)s][%(name)s]: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._colored = colored

    def format(self, record: logging.LogRecord) -> str:
        record = logging.makeLogRecord(record.__dict__)
        name = _LEVEL_NAMES.get(record.levelno, record.levelname)
        color = _LEVEL_COLORS.get(record.levelno) if self._colored else None
        record.levelname = f"{color}{name}{_RESET}" if color else name
        return super().format(record)


def log_level_from_env(default_level: int) -> int:
    """Return the level named by the LOG_LEVEL variable, or ``default_level``."""
    value = os.environ.get("LOG_LEVEL")
    if value is None:
        return default_level
    return _ENV_LEVELS.get(value.lower(), default_level)


def _log_uncaught(exc_type, exc, tb) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logging.getLogger("panic").error("Uncaught exception", exc_info=(exc_type, exc, tb))


def setup_logger(module: str, testing: bool, verbose: bool) -> Path:
    """Configure the root logger and return the path of the new log file."""
    log_dir = dirs.get_log_dir(module)
    suffix = "-testing" if testing else ""
    stamp = datetime.now().astimezone().strftime("%Y-%m-%dT%H-%M-%S%z")
    logfile_path = log_dir / f"{module}{suffix}_{stamp}.log"

    sys.excepthook = _log_uncaught

    default_level = logging.DEBUG if testing or verbose else logging.INFO
    level = log_level_from_env(default_level)

    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, _TAG, False)]:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    if level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_Formatter(colored=True))
    file_handler = logging.FileHandler(logfile_path, encoding="utf-8")
    file_handler.setFormatter(_Formatter(colored=False))
    for handler in (console, file_handler):
        setattr(handler, _TAG, True)
        root.addHandler(handler)

    return logfile_path