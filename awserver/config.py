"""Server configuration and its TOML file."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from typing import Any

import tomli_w

from awserver import dirs

log = logging.getLogger(__name__)

DEFAULT_ADDRESS = "127.0.0.1"
TESTING_PORT = 5666
RELEASE_PORT = 5600

_testing = True


def set_testing(testing: bool) -> None:
    """Set whether defaults are computed for testing mode."""
    global _testing
    _testing = bool(testing)


def is_testing() -> bool:
    """Return whether defaults are computed for testing mode."""
    return _testing


def _default_port() -> int:
    return TESTING_PORT if is_testing() else RELEASE_PORT


@dataclass
class AWConfig:
    """Settings of a server instance."""

    address: str = DEFAULT_ADDRESS
    port: int = field(default_factory=_default_port)
    testing: bool = field(default_factory=is_testing)
    cors: list[str] = field(default_factory=list)
    cors_regex: list[str] = field(default_factory=list)
    # Watcher names mapped to directories holding custom visualizations.
    custom_static: dict[str, str] = field(default_factory=dict)

    def dumps(self) -> str:
        """Serialize to TOML; the testing flag is never written."""
        return tomli_w.dumps(
            {
                "address": self.address,
                "port": self.port,
                "cors": list(self.cors),
                "cors_regex": list(self.cors_regex),
                "custom_static": dict(self.custom_static),
            }
        )


def _fail(message: str) -> ValueError:
    return ValueError(f"Failed to parse config file: {message}")


def _as_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise _fail(f"'{name}' must be a string")
    return value


def _as_port(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _fail("'port' must be an integer")
    if not 0 <= value <= 65535:
        raise _fail(f"'port' out of range: {value}")
    return value


def _as_str_list(name: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise _fail(f"'{name}' must be a list of strings")
    return list(value)


def _as_str_map(name: str, value: Any) -> dict[str, str]:
    if not isinstance(value, dict) or not all(
        isinstance(v, str) for v in value.values()
    ):
        raise _fail(f"'{name}' must be a table of strings")
    return dict(value)


def parse_config(text: str) -> AWConfig:
    """Parse TOML text into a config, filling in defaults for missing keys."""
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise _fail(str(exc)) from exc

    values: dict[str, Any] = {}
    if "address" in raw:
        values["address"] = _as_str("address", raw["address"])
    if "port" in raw:
        values["port"] = _as_port(raw["port"])
    for name in ("cors", "cors_regex"):
        if name in raw:
            values[name] = _as_str_list(name, raw[name])
    if "custom_static" in raw:
        values["custom_static"] = _as_str_map("custom_static", raw["custom_static"])
    return AWConfig(**values)


def _commented_defaults() -> str:
    lines = ["### DEFAULT SETTINGS ###"]
    lines.extend(f"#{line}" for line in AWConfig().dumps().splitlines())
    return "\n".join(lines) + "\n"


def create_config(testing: bool) -> AWConfig:
    """Load the config file, first writing a commented-out default one if absent."""
    set_testing(testing)
    name = "config-testing.toml" if testing else "config.toml"
    config_path = dirs.get_config_dir() / name

    # Every default is commented out so later changes to defaults take effect.
    if not config_path.is_file():
        log.debug("Writing default commented out config at %s", config_path)
        config_path.write_text(_commented_defaults(), encoding="utf-8")

    log.debug("Reading config at %s", config_path)
    return parse_config(config_path.read_text(encoding="utf-8"))