"""Abstract transport interface for the robot link.

All code that touches the radio goes through Transport. Only the
connection manager's worker holds a Transport; nothing else may read or
write one directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from vacremote.protocol.address import DeviceAddress

# Bluetooth Serial Port Profile service class
SPP_UUID = "00001101-0000-1000-8000-00805F9B34FB"


class Transport(ABC):
    """Abstract byte-stream sink bound to one physical connection.

    open(), write(), flush() and close() block and are called from a single
    worker thread. abort() may be called from any thread.
    """

    @abstractmethod
    def open(self) -> None:
        """Open the connection.

        Raises:
            PermissionError: If the platform refuses the radio operation.
            OSError: If the device cannot be reached.
        """
        ...

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of data to the connection.

        Raises:
            OSError: On any I/O error.
        """
        ...

    @abstractmethod
    def flush(self) -> None:
        """Push buffered bytes out to the device."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the underlying sink and release the connection."""
        ...

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the connection is currently open."""
        ...

    def abort(self) -> None:
        """Interrupt a blocking open() running on another thread."""
        self.close()


TransportFactory = Callable[[DeviceAddress], Transport]
