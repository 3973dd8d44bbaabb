"""Shared fixtures."""

from __future__ import annotations

import pytest

SETTINGS_ENV_VARS = [
    "DEVICE_ADDRESS", "TRANSPORT", "RFCOMM_CHANNEL", "SERIAL_PORT",
    "BAUD_RATE", "CONNECT_TIMEOUT", "WRITE_TIMEOUT", "DEFAULT_SPEED",
    "MAX_WRITE_FAILURES", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove settings env vars so tests start clean."""
    for key in SETTINGS_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
