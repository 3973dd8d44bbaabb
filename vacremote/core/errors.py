"""Error taxonomy for the remote-control core.

Every error carries an ErrorKind so the presentation layer can render a
last-error indicator without inspecting exception types.
"""

from __future__ import annotations

from enum import Enum, auto


class ErrorKind(Enum):
    """Failure categories observable by the presentation layer."""

    INVALID_ADDRESS = auto()
    ALREADY_CONNECTED = auto()
    PERMISSION_DENIED = auto()
    DEVICE_UNREACHABLE = auto()
    CONNECT_CANCELLED = auto()
    NOT_CONNECTED = auto()
    WRITE_FAILURE = auto()


class RemoteControlError(Exception):
    """Base class for all remote-control errors."""

    kind: ErrorKind


class InvalidAddressError(RemoteControlError, ValueError):
    """The device address string is malformed."""

    kind = ErrorKind.INVALID_ADDRESS


class ConnectError(RemoteControlError):
    """A connect attempt was rejected or failed."""


class AlreadyConnectedError(ConnectError):
    """Connect attempted while connecting or connected."""

    kind = ErrorKind.ALREADY_CONNECTED


class PermissionDeniedError(ConnectError):
    """The platform denied the radio operation."""

    kind = ErrorKind.PERMISSION_DENIED


class DeviceUnreachableError(ConnectError):
    """The transport could not be opened."""

    kind = ErrorKind.DEVICE_UNREACHABLE


class ConnectCancelledError(ConnectError):
    """A disconnect interrupted the connect attempt."""

    kind = ErrorKind.CONNECT_CANCELLED


class SendError(RemoteControlError):
    """A command could not be written."""


class NotConnectedError(SendError):
    """Send attempted without an active connection."""

    kind = ErrorKind.NOT_CONNECTED


class WriteFailureError(SendError):
    """I/O error while writing a command."""

    kind = ErrorKind.WRITE_FAILURE
