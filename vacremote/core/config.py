"""Configuration loader for the vacuum robot remote.

Loads settings from environment variables (.env file) and config/default.yaml,
with environment variables taking precedence over YAML defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from vacremote.protocol.address import parse_address


# Project root is three levels up from this file (vacremote/core/config.py -> project root).
# Only a source checkout or editable install has config/ there.
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

TRANSPORT_KINDS = ("rfcomm", "serial")


@dataclass(frozen=True)
class Settings:
    """Immutable configuration for the vacuum robot remote."""

    # Device
    device_address: str

    # Transport
    transport: str
    rfcomm_channel: int
    serial_port: str
    baud_rate: int
    connect_timeout: float
    write_timeout: float

    # Session
    default_speed: int
    max_write_failures: int

    # Logging
    log_level: str


def _load_yaml_defaults(yaml_path: Path) -> dict[str, Any]:
    """Load default values from a YAML config file.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        Dictionary of configuration values. Empty dict if file not found.
    """
    if not yaml_path.exists():
        return {}
    with open(yaml_path) as f:
        data = yaml.safe_load(f)
    return data if data else {}


def _get(env_key: str, yaml_defaults: dict[str, Any], yaml_key: str, default: Any = None) -> Any:
    """Get a config value with precedence: env var > yaml default > hardcoded default.

    Args:
        env_key: Environment variable name.
        yaml_defaults: Dictionary from YAML config file.
        yaml_key: Dot-separated key path in YAML (e.g., "transport.baud_rate").
        default: Fallback default value.

    Returns:
        The resolved configuration value.
    """
    env_val = os.environ.get(env_key)
    if env_val is not None and env_val != "":
        return env_val

    parts = yaml_key.split(".")
    node = yaml_defaults
    for part in parts:
        if isinstance(node, dict) and part in node:
            node = node[part]
        else:
            return default
    return node if node is not None else default


def load_settings(
    env_path: Path | None = None,
    yaml_path: Path | None = None,
) -> Settings:
    """Load settings from .env and config/default.yaml.

    Environment variables take precedence over YAML defaults.

    Args:
        env_path: Path to .env file. Defaults to PROJECT_ROOT/.env.
        yaml_path: Path to YAML config. Defaults to PROJECT_ROOT/config/default.yaml.

    Returns:
        Frozen Settings dataclass with all configuration values.

    Raises:
        ValueError: If the transport kind, device address or default speed
            is invalid.
    """
    if env_path is None:
        env_path = PROJECT_ROOT / ".env"
    if yaml_path is None:
        yaml_path = PROJECT_ROOT / "config" / "default.yaml"

    load_dotenv(env_path, override=False)
    yaml_defaults = _load_yaml_defaults(yaml_path)

    device_address = str(_get("DEVICE_ADDRESS", yaml_defaults, "device.address", ""))
    if device_address:
        # Normalize to the canonical uppercase form; raises on bad input.
        device_address = str(parse_address(device_address))

    transport = str(_get("TRANSPORT", yaml_defaults, "transport.kind", "rfcomm")).lower()
    if transport not in TRANSPORT_KINDS:
        raise ValueError(
            f"TRANSPORT must be one of {TRANSPORT_KINDS}, got '{transport}'."
        )

    default_speed = int(_get("DEFAULT_SPEED", yaml_defaults, "session.default_speed", 50))
    if not 0 <= default_speed <= 100:
        raise ValueError(f"DEFAULT_SPEED must be within 0..100, got {default_speed}.")

    return Settings(
        device_address=device_address,
        transport=transport,
        rfcomm_channel=int(
            _get("RFCOMM_CHANNEL", yaml_defaults, "transport.rfcomm_channel", 0)
        ),
        serial_port=str(
            _get("SERIAL_PORT", yaml_defaults, "transport.serial_port", "/dev/rfcomm0")
        ),
        baud_rate=int(
            _get("BAUD_RATE", yaml_defaults, "transport.baud_rate", 115200)
        ),
        connect_timeout=float(
            _get("CONNECT_TIMEOUT", yaml_defaults, "transport.connect_timeout", 10.0)
        ),
        write_timeout=float(
            _get("WRITE_TIMEOUT", yaml_defaults, "transport.write_timeout", 2.0)
        ),
        default_speed=default_speed,
        max_write_failures=int(
            _get("MAX_WRITE_FAILURES", yaml_defaults, "session.max_write_failures", 3)
        ),
        log_level=str(
            _get("LOG_LEVEL", yaml_defaults, "logging.level", "INFO")
        ),
    )
