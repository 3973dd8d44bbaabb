"""Transport selection from settings."""

from __future__ import annotations

from functools import partial

from vacremote.core.config import Settings
from vacremote.transport.interfaces import TransportFactory


def create_transport_factory(settings: Settings) -> TransportFactory:
    """Return a factory building the configured transport for an address.

    The transport modules are imported here so that only the selected
    backend's library has to be installed.

    Args:
        settings: Application settings.

    Returns:
        Callable mapping a DeviceAddress to an unopened Transport.

    Raises:
        ValueError: If settings.transport is not a known kind.
    """
    if settings.transport == "rfcomm":
        from vacremote.transport.rfcomm import RfcommTransport

        return partial(
            RfcommTransport,
            channel=settings.rfcomm_channel,
            timeout=settings.connect_timeout,
        )
    if settings.transport == "serial":
        from vacremote.transport.serial_port import SerialPortTransport

        return partial(
            SerialPortTransport,
            port=settings.serial_port,
            baud_rate=settings.baud_rate,
            write_timeout=settings.write_timeout,
        )
    raise ValueError(f"Unknown transport: {settings.transport!r}")
