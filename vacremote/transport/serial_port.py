"""RFCOMM transport through a bound serial tty, using pyserial.

On Linux an RFCOMM link can be bound to a device node with
``rfcomm bind /dev/rfcomm0 <address>``; opening the node then connects to
the robot's serial port service. From here it is just a serial port.
"""

from __future__ import annotations

import errno
import logging

import serial

from vacremote.protocol.address import DeviceAddress
from vacremote.transport.interfaces import Transport

logger = logging.getLogger(__name__)


class SerialPortTransport(Transport):
    """Serial port bound to one robot.

    Args:
        address: Robot device address the port is bound to (informational).
        port: Serial device path, e.g. ``/dev/rfcomm0``.
        baud_rate: Line speed. Ignored by RFCOMM ttys but required by pyserial.
        write_timeout: Seconds before a blocked write fails.
    """

    def __init__(
        self,
        address: DeviceAddress,
        port: str = "/dev/rfcomm0",
        baud_rate: int = 115200,
        write_timeout: float = 2.0,
    ) -> None:
        self._address = address
        self._serial = serial.Serial()
        self._serial.port = port
        self._serial.baudrate = baud_rate
        self._serial.write_timeout = write_timeout

    def open(self) -> None:
        """Open the serial device."""
        logger.debug("Opening %s for %s", self._serial.port, self._address)
        try:
            self._serial.open()
        except serial.SerialException as e:
            if e.errno in (errno.EACCES, errno.EPERM):
                raise PermissionError(
                    f"Access to {self._serial.port} denied: {e}"
                ) from e
            raise

    def write(self, data: bytes) -> None:
        """Write data to the port."""
        if not self._serial.is_open:
            raise BrokenPipeError(f"{self._serial.port} is not open.")
        self._serial.write(data)

    def flush(self) -> None:
        """Wait until all data is written."""
        if self._serial.is_open:
            self._serial.flush()

    def close(self) -> None:
        """Close the serial device."""
        self._serial.close()

    def is_open(self) -> bool:
        """Check if the port is open."""
        return self._serial.is_open
