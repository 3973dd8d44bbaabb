"""In-memory transport for development and testing without a robot.

StubTransport records every byte written to it and can be told to fail
at open, write or close time.
"""

from __future__ import annotations

import threading

from vacremote.protocol.address import DeviceAddress
from vacremote.transport.interfaces import Transport


class StubTransport(Transport):
    """Records written bytes in memory.

    Args:
        address: Address the transport is bound to.
        open_error: Exception raised by open(), if any.
        write_error: Exception raised by write(), if any.
        close_error: Exception raised by close(), if any.
        open_gate: If given, open() blocks until the event is set or
            abort() is called.
    """

    def __init__(
        self,
        address: DeviceAddress | None = None,
        open_error: BaseException | None = None,
        write_error: BaseException | None = None,
        close_error: BaseException | None = None,
        open_gate: threading.Event | None = None,
    ) -> None:
        self.address = address
        self.open_error = open_error
        self.write_error = write_error
        self.close_error = close_error
        self._open_gate = open_gate
        self._aborted = threading.Event()
        self._open = False
        self._chunks: list[bytes] = []
        self.open_calls = 0
        self.flush_calls = 0
        self.close_calls = 0

    def open(self) -> None:
        """Open the stub connection."""
        self.open_calls += 1
        if self._open_gate is not None:
            while not self._open_gate.wait(0.01):
                if self._aborted.is_set():
                    break
        if self._aborted.is_set():
            raise ConnectionAbortedError("Connection aborted.")
        if self.open_error is not None:
            raise self.open_error
        self._open = True

    def write(self, data: bytes) -> None:
        """Record data as written to the wire."""
        if not self._open:
            raise BrokenPipeError("Stub transport is not open.")
        if self.write_error is not None:
            raise self.write_error
        self._chunks.append(bytes(data))

    def flush(self) -> None:
        """Count the flush; nothing is buffered."""
        self.flush_calls += 1

    def close(self) -> None:
        """Close the connection, raising close_error if configured."""
        self.close_calls += 1
        self._open = False
        if self.close_error is not None:
            raise self.close_error

    def is_open(self) -> bool:
        """Check if the stub connection is open."""
        return self._open

    def abort(self) -> None:
        """Release a blocked open()."""
        self._aborted.set()

    def get_written_data(self) -> bytes:
        """Return all bytes written so far (for testing).

        Returns:
            Concatenated bytes from every write.
        """
        return b"".join(self._chunks)

    def get_written_lines(self) -> list[bytes]:
        """Return each write as a separate entry (for testing)."""
        return list(self._chunks)


class StubTransportFactory:
    """Builds StubTransports and remembers every one it built.

    Keyword arguments are passed to each StubTransport.
    """

    def __init__(self, **transport_kwargs: object) -> None:
        self.transport_kwargs = transport_kwargs
        self.created: list[StubTransport] = []

    def __call__(self, address: DeviceAddress) -> StubTransport:
        transport = StubTransport(address, **self.transport_kwargs)  # type: ignore[arg-type]
        self.created.append(transport)
        return transport

    @property
    def last(self) -> StubTransport:
        """The most recently built transport."""
        return self.created[-1]
