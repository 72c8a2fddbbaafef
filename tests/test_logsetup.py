import logging
import sys

import pytest

from awserver import logsetup


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    werkzeug = logging.getLogger("werkzeug")
    saved_werkzeug = werkzeug.level
    yield monkeypatch
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    werkzeug.setLevel(saved_werkzeug)


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


def test_level_from_env_default(env):
    assert logsetup.log_level_from_env(logging.INFO) == logging.INFO


@pytest.mark.parametrize(
    "value, expected",
    [
        ("trace", logsetup.TRACE),
        ("DEBUG", logging.DEBUG),
        ("Info", logging.INFO),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
    ],
)
def test_level_from_env_names(env, value, expected):
    env.setenv("LOG_LEVEL", value)
    assert logsetup.log_level_from_env(logging.INFO) == expected


def test_level_from_env_unknown_falls_back(env):
    env.setenv("LOG_LEVEL", "loud")
    assert logsetup.log_level_from_env(logging.DEBUG) == logging.DEBUG


def test_setup_testing_writes_file(env):
    path = logsetup.setup_logger("aw-server-rust", True, False)
    assert path.name.startswith("aw-server-rust-testing_")
    assert path.suffix == ".log"
    assert logging.getLogger().level == logging.DEBUG
    logging.getLogger("checker").debug("hello file")
    _flush()
    text = path.read_text()
    assert "[checker]: hello file" in text
    assert "\x1b[" not in text


def test_setup_release_quiets_server_logs(env):
    path = logsetup.setup_logger("aw-server-rust", False, False)
    assert path.name.startswith("aw-server-rust_")
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("werkzeug").level == logging.WARNING


def test_setup_verbose_is_debug(env):
    path = logsetup.setup_logger("aw-server-rust", False, True)
    assert path.name.startswith("aw-server-rust_")
    assert logging.getLogger().level == logging.DEBUG
    logging.getLogger("checker").debug("verbose line")
    _flush()
    assert "[checker]: verbose line" in path.read_text()


def test_env_overrides_level(env):
    env.setenv("LOG_LEVEL", "error")
    path = logsetup.setup_logger("aw-server-rust", True, True)
    assert path.name.startswith("aw-server-rust-testing_")
    assert logging.getLogger().level == logging.ERROR
    logging.getLogger("checker").info("hidden line")
    logging.getLogger("checker").error("shown line")
    _flush()
    text = path.read_text()
    assert "hidden line" not in text
    assert "shown line" in text


def test_setup_twice_replaces_handlers(env):
    root = logging.getLogger()
    before = len(root.handlers)
    first = logsetup.setup_logger("aw-server-rust", True, False)
    once = len(root.handlers)
    second = logsetup.setup_logger("aw-server-rust", True, False)
    assert len(root.handlers) == once == before + 2
    assert first.parent == second.parent
    assert second.name.startswith("aw-server-rust-testing_")


def test_uncaught_exceptions_are_logged(env):
    path = logsetup.setup_logger("aw-server-rust", True, False)
    sys.excepthook(ValueError, ValueError("boom"), None)
    _flush()
    assert "boom" in path.read_text()