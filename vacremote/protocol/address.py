"""Bluetooth device address parsing.

An address is six colon-separated pairs of hex digits, e.g.
``AA:BB:CC:DD:EE:FF``. Parsing is case-insensitive; rendering is always
uppercase.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from vacremote.core.errors import InvalidAddressError

_ADDRESS_RE = re.compile(r"[0-9A-Fa-f]{2}(?::[0-9A-Fa-f]{2}){5}")


@dataclass(frozen=True)
class DeviceAddress:
    """A validated 6-octet hardware address.

    Attributes:
        octets: The six address bytes, most significant first.
    """

    octets: tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.octets) != 6 or not all(
            isinstance(o, int) and 0 <= o <= 0xFF for o in self.octets
        ):
            raise InvalidAddressError(
                f"Device address needs six octets in 0..255, got {self.octets!r}"
            )

    def __str__(self) -> str:
        return ":".join(f"{o:02X}" for o in self.octets)


def parse_address(raw: Any) -> DeviceAddress:
    """Parse a device address string.

    Args:
        raw: Address string such as ``"aa:bb:cc:dd:ee:ff"``.

    Returns:
        The validated DeviceAddress.

    Raises:
        InvalidAddressError: If raw is not exactly six colon-separated
            hex byte pairs (surrounding whitespace is not accepted).
    """
    if not isinstance(raw, str) or _ADDRESS_RE.fullmatch(raw) is None:
        raise InvalidAddressError(f"Invalid device address: {raw!r}")
    return DeviceAddress(tuple(int(part, 16) for part in raw.split(":")))
