import sys

import pytest

from awserver import dirs


@pytest.fixture
def home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    return tmp_path


@pytest.mark.parametrize(
    "getter", [dirs.get_config_dir, dirs.get_data_dir, dirs.get_cache_dir]
)
def test_app_dirs_are_created_under_vendor(home, getter):
    path = getter()
    assert path.parts[-2:] == ("activitywatch", "aw-server-rust")
    assert path.is_dir()


def test_config_dir_is_under_home(home):
    path = dirs.get_config_dir()
    assert home in path.parents


def test_log_dir_has_log_component(home):
    log_dir = dirs.get_log_dir("aw-server-rust")
    assert log_dir.is_dir()
    if sys.platform == "darwin":
        expected = ("Library", "Logs", "activitywatch", "aw-server-rust")
    elif sys.platform.startswith("win"):
        expected = ("activitywatch", "Logs", "aw-server-rust")
    else:
        expected = ("activitywatch", "log", "aw-server-rust")
    assert log_dir.parts[-len(expected):] == expected


def test_log_dirs_differ_per_module(home):
    first = dirs.get_log_dir("aw-server-rust")
    second = dirs.get_log_dir("aw-sync")
    assert first.parent == second.parent
    assert first.name == "aw-server-rust"
    assert second.name == "aw-sync"


def test_db_path_names(home):
    assert dirs.db_path(True).name == "sqlite-testing.db"
    assert dirs.db_path(False).name == "sqlite.db"


def test_db_path_lives_in_data_dir(home):
    assert dirs.db_path(False).parent == dirs.get_data_dir()
    assert dirs.db_path(True).parent == dirs.get_data_dir()