"""Connection state machine definitions.

Defines the states of the link between the client and the robot.
"""

from __future__ import annotations

from enum import Enum, auto


class ConnectionState(Enum):
    """States of the connection manager.

    Transitions:
        DISCONNECTED → CONNECTING (connect requested)
        FAILED → CONNECTING (connect retried)
        CONNECTING → CONNECTED (transport opened)
        CONNECTING → FAILED (open failed)
        CONNECTING → DISCONNECTED (disconnect interrupted the open)
        CONNECTED → DISCONNECTED (disconnect)
        FAILED → DISCONNECTED (disconnect)
    """

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    FAILED = auto()
