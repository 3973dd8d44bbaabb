"""Bluetooth Classic RFCOMM transport using PyBluez.

Opens a Serial Port Profile channel to the robot. The RFCOMM channel is
looked up over SDP by the SPP service UUID unless a fixed channel is
configured.
"""

from __future__ import annotations

import errno
import logging
import socket
import threading

import bluetooth

from vacremote.protocol.address import DeviceAddress
from vacremote.transport.interfaces import SPP_UUID, Transport

logger = logging.getLogger(__name__)

_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}


def _is_permission_error(err: BaseException) -> bool:
    if getattr(err, "errno", None) in _PERMISSION_ERRNOS:
        return True
    # PyBluez folds the errno into the message on some backends
    return "permission denied" in str(err).lower()


class RfcommTransport(Transport):
    """RFCOMM socket bound to one robot.

    Args:
        address: Robot device address.
        channel: Fixed RFCOMM channel, or 0 to resolve it over SDP.
        timeout: Socket timeout in seconds for connect and write.
        service_uuid: Service class to resolve over SDP.
    """

    def __init__(
        self,
        address: DeviceAddress,
        channel: int = 0,
        timeout: float = 10.0,
        service_uuid: str = SPP_UUID,
    ) -> None:
        self._address = address
        self._channel = channel
        self._timeout = timeout
        self._service_uuid = service_uuid
        self._sock: bluetooth.BluetoothSocket | None = None
        self._lock = threading.Lock()
        self._aborted = threading.Event()

    def open(self) -> None:
        """Resolve the channel and connect the RFCOMM socket.

        Raises:
            ConnectionAbortedError: If abort() was called before or during open.
        """
        host = str(self._address)
        try:
            channel = self._channel or self._lookup_channel(host)
            self._check_aborted(host)
            sock = bluetooth.BluetoothSocket(bluetooth.RFCOMM)
            # abort() takes the same lock, so it either sees this socket
            # or has already set the flag.
            with self._lock:
                self._sock = sock
            self._check_aborted(host)
            sock.settimeout(self._timeout)
            logger.debug("Connecting RFCOMM %s channel %d", host, channel)
            sock.connect((host, channel))
            self._check_aborted(host)
        except bluetooth.BluetoothError as e:
            self._discard_socket()
            if _is_permission_error(e):
                raise PermissionError(f"Bluetooth access denied for {host}: {e}") from e
            raise ConnectionError(f"RFCOMM connect to {host} failed: {e}") from e
        except OSError:
            self._discard_socket()
            raise

    def write(self, data: bytes) -> None:
        """Send all of data over the socket."""
        sock = self._sock
        if sock is None:
            raise BrokenPipeError("RFCOMM socket is not open.")
        view = memoryview(data)
        try:
            while view:
                sent = sock.send(bytes(view))
                view = view[sent:]
        except bluetooth.BluetoothError as e:
            raise ConnectionError(f"RFCOMM write failed: {e}") from e

    def flush(self) -> None:
        """RFCOMM sockets are unbuffered on the host side."""

    def close(self) -> None:
        """Close the socket."""
        sock = self._drop_socket()
        if sock is not None:
            try:
                sock.close()
            except bluetooth.BluetoothError as e:
                raise OSError(f"RFCOMM close failed: {e}") from e

    def is_open(self) -> bool:
        """Check if a socket is held."""
        return self._sock is not None

    def abort(self) -> None:
        """Make open() give up and shut down a socket blocked in connect()."""
        with self._lock:
            self._aborted.set()
            sock = self._sock
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except (OSError, bluetooth.BluetoothError) as e:
            logger.debug("RFCOMM abort: %s", e)

    def _check_aborted(self, host: str) -> None:
        if self._aborted.is_set():
            raise ConnectionAbortedError(f"RFCOMM connect to {host} aborted.")

    def _lookup_channel(self, host: str) -> int:
        """Find the RFCOMM channel of the SPP service on host."""
        services = bluetooth.find_service(uuid=self._service_uuid, address=host)
        for service in services:
            if service.get("protocol") == "RFCOMM" and service.get("port"):
                logger.debug("SDP: %s serves SPP on channel %s", host, service["port"])
                return int(service["port"])
        raise ConnectionError(f"No serial port service found on {host}")

    def _drop_socket(self) -> bluetooth.BluetoothSocket | None:
        with self._lock:
            sock, self._sock = self._sock, None
        return sock

    def _discard_socket(self) -> None:
        sock = self._drop_socket()
        if sock is None:
            return
        try:
            sock.close()
        except (OSError, bluetooth.BluetoothError) as e:
            logger.debug("RFCOMM close after failed connect: %s", e)
