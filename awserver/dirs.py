"""Platform directories used by the server for configuration, data, cache and logs."""

from __future__ import annotations

import sys
from pathlib import Path

import platformdirs

_VENDOR = "activitywatch"
_APP = "aw-server-rust"


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if needed."""
    return _ensure(platformdirs.user_config_path(roaming=True) / _VENDOR / _APP)


def get_data_dir() -> Path:
    """Return the data directory, creating it if needed."""
    return _ensure(platformdirs.user_data_path(roaming=True) / _VENDOR / _APP)


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if needed."""
    return _ensure(platformdirs.user_cache_path() / _VENDOR / _APP)


def _user_log_dir() -> Path:
    """Return the platform log directory shared by all ActivityWatch modules.

    - Linux:   ~/.cache/activitywatch/log
    - macOS:   ~/Library/Logs/activitywatch
    - Windows: {LOCALAPPDATA}/activitywatch/Logs
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Logs" / _VENDOR
    if sys.platform.startswith("win"):
        return platformdirs.user_data_path(roaming=False) / _VENDOR / "Logs"
    return platformdirs.user_cache_path() / _VENDOR / "log"


def get_log_dir(module: str) -> Path:
    """Return the log directory for ``module``, creating it if needed."""
    return _ensure(_user_log_dir() / module)


def db_path(testing: bool) -> Path:
    """Return the path of the database file for normal or testing mode."""
    name = "sqlite-testing.db" if testing else "sqlite.db"
    return get_data_dir() / name