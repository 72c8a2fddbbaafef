import uuid

import pytest

from awserver import device_id, dirs


@pytest.fixture
def home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    return tmp_path


def test_generates_uuid4(home):
    value = device_id.get_device_id()
    assert uuid.UUID(value).version == 4
    assert str(uuid.UUID(value)) == value


def test_is_stable(home):
    first = device_id.get_device_id()
    assert device_id.get_device_id() == first


def test_persists_to_data_dir(home):
    value = device_id.get_device_id()
    assert (dirs.get_data_dir() / "device_id").read_text() == value


def test_reads_existing_file(home):
    (dirs.get_data_dir() / "device_id").write_text("my-device")
    assert device_id.get_device_id() == "my-device"