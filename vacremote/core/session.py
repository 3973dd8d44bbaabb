"""Session state: turns user intents into robot commands.

Keeps the local view of the robot (vacuum on/off, speed, active drive
direction), encodes each intent as a protocol command and hands it to the
ConnectionManager. Local fields are updated before the send and are not
rolled back if the send fails, so the view can run ahead of the robot
while the link is down.
"""

from __future__ import annotations

import logging

from vacremote.core.connection import ConnectionManager
from vacremote.core.errors import (
    ErrorKind,
    RemoteControlError,
    SendError,
    WriteFailureError,
)
from vacremote.protocol.address import parse_address
from vacremote.protocol.commands import (
    Command,
    Direction,
    Move,
    SetSpeed,
    Stop,
    VacuumOff,
    VacuumOn,
    encode,
)

logger = logging.getLogger(__name__)

MIN_SPEED = 0
MAX_SPEED = 100


def clamp_speed(value: int | float) -> int:
    """Clamp a requested speed to the 0..100 percent range."""
    return max(MIN_SPEED, min(MAX_SPEED, int(value)))


class RemoteSession:
    """Mediates intents from the presentation layer into commands.

    All intents must be called from the event loop that owns the
    connection. Each one updates local state and queues its command
    before its first await, so concurrent intents keep their order on
    the wire.

    Args:
        connection: Connection manager used for all I/O.
        default_speed: Initial speed in percent.
        max_write_failures: Consecutive write failures after which the
            session forces a disconnect. 0 disables this.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        default_speed: int = 50,
        max_write_failures: int = 3,
    ) -> None:
        self._connection = connection
        self._vacuum_on = False
        self._speed = clamp_speed(default_speed)
        self._active_direction: Direction | None = None
        self._last_error: ErrorKind | None = None
        self._max_write_failures = max_write_failures
        self._write_failures = 0

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self._connection.is_connected

    @property
    def vacuum_on(self) -> bool:
        return self._vacuum_on

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def active_direction(self) -> Direction | None:
        return self._active_direction

    @property
    def last_error(self) -> ErrorKind | None:
        """Kind of the most recent failed intent, None after a success."""
        return self._last_error

    # ------------------------------------------------------------------
    # Connection intents
    # ------------------------------------------------------------------

    async def connect(self, address: str) -> bool:
        """Validate address and connect to it.

        Args:
            address: Device address as typed by the user.

        Returns:
            True if the link is now open.
        """
        try:
            await self._connection.connect(parse_address(address))
        except RemoteControlError as e:
            logger.info("Connect to %r failed: %s", address, e)
            self._last_error = e.kind
            return False
        self._last_error = None
        self._write_failures = 0
        return True

    async def disconnect(self) -> None:
        """Close the link. Any active drive direction is forgotten."""
        self._active_direction = None
        await self._connection.disconnect()

    # ------------------------------------------------------------------
    # Robot intents
    # ------------------------------------------------------------------

    async def set_vacuum(self, on: bool) -> bool:
        """Switch suction on or off."""
        self._vacuum_on = bool(on)
        return await self._send(VacuumOn() if self._vacuum_on else VacuumOff())

    async def toggle_vacuum(self) -> bool:
        """Flip suction, as the single vacuum button does."""
        return await self.set_vacuum(not self._vacuum_on)

    async def set_speed(self, value: int | float) -> bool:
        """Set motor speed; out-of-range values are clamped to 0..100."""
        self._speed = clamp_speed(value)
        return await self._send(SetSpeed(self._speed))

    async def start_move(self, direction: Direction) -> bool:
        """Start driving; replaces any direction already active."""
        self._active_direction = direction
        return await self._send(Move(direction))

    async def end_move(self, direction: Direction | None = None) -> bool:
        """Release a momentary direction control.

        Args:
            direction: The control being released. If another direction
                has since become active, the release is stale and nothing
                is sent.

        Returns:
            True if Stop reached the wire or the release was stale.
        """
        if (
            direction is not None
            and self._active_direction is not None
            and direction is not self._active_direction
        ):
            logger.debug(
                "Ignoring release of %s while %s is active",
                direction.name,
                self._active_direction.name,
            )
            return True
        self._active_direction = None
        return await self._send(Stop())

    async def stop_now(self) -> bool:
        """Stop unconditionally."""
        self._active_direction = None
        return await self._send(Stop())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _send(self, command: Command) -> bool:
        """Encode and send one command, recording the outcome."""
        try:
            await self._connection.send(encode(command))
        except SendError as e:
            self._last_error = e.kind
            if isinstance(e, WriteFailureError):
                await self._note_write_failure()
            else:
                logger.debug("Dropped %s: %s", command, e)
            return False
        self._last_error = None
        self._write_failures = 0
        return True

    async def _note_write_failure(self) -> None:
        self._write_failures += 1
        if self._max_write_failures and self._write_failures >= self._max_write_failures:
            logger.warning(
                "%d consecutive write failures; dropping the connection.",
                self._write_failures,
            )
            self._write_failures = 0
            await self.disconnect()
