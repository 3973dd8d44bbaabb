"""Robot command set and its line-based ASCII encoding.

Each command is one newline-terminated line. The robot never answers, so
there is no decoder.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class Direction(Enum):
    """Drive directions, valued by their wire letter."""

    FORWARD = "F"
    BACKWARD = "B"
    LEFT = "L"
    RIGHT = "R"


@dataclass(frozen=True)
class VacuumOn:
    pass


@dataclass(frozen=True)
class VacuumOff:
    pass


@dataclass(frozen=True)
class SetSpeed:
    """Motor speed in percent. Callers clamp to 0..100 before encoding."""

    percent: int


@dataclass(frozen=True)
class Move:
    direction: Direction


@dataclass(frozen=True)
class Stop:
    pass


Command = Union[VacuumOn, VacuumOff, SetSpeed, Move, Stop]

_TERMINATOR = "\n"


def encode(command: Command) -> bytes:
    """Encode a command as one protocol line.

    Args:
        command: The command to encode.

    Returns:
        ASCII bytes ending in a newline.

    Raises:
        TypeError: If command is not a known command type.
    """
    if isinstance(command, VacuumOn):
        line = "V1"
    elif isinstance(command, VacuumOff):
        line = "V0"
    elif isinstance(command, SetSpeed):
        line = f"S{int(command.percent)}"
    elif isinstance(command, Move):
        line = command.direction.value
    elif isinstance(command, Stop):
        line = "X"
    else:
        raise TypeError(f"Not a robot command: {command!r}")
    return (line + _TERMINATOR).encode("ascii")
