"""Persistent identifier of this device."""

from __future__ import annotations

import uuid

from awserver import dirs


def get_device_id() -> str:
    """Return the stored device ID, generating and storing a UUID v4 if none exists."""
    path = dirs.get_data_dir() / "device_id"
    if path.exists():
        return path.read_text(encoding="utf-8")
    device_id = str(uuid.uuid4())
    path.write_text(device_id, encoding="utf-8")
    return device_id