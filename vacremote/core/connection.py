"""Connection manager: owns the robot transport and serializes all link I/O.

Every connect, disconnect and send becomes a request on one asyncio queue.
A single worker task drains the queue in order and runs the blocking
transport calls on a dedicated one-thread executor, so commands reach the
wire in the order they were issued and never interleave.

State machine: DISCONNECTED → CONNECTING → CONNECTED | FAILED, and back to
DISCONNECTED on disconnect. See ConnectionState for the full table.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable

from vacremote.core.errors import (
    AlreadyConnectedError,
    ConnectCancelledError,
    DeviceUnreachableError,
    NotConnectedError,
    PermissionDeniedError,
    RemoteControlError,
    WriteFailureError,
)
from vacremote.core.state_machine import ConnectionState
from vacremote.protocol.address import DeviceAddress
from vacremote.transport.interfaces import Transport, TransportFactory

logger = logging.getLogger(__name__)


class _RequestKind(Enum):
    CONNECT = auto()
    DISCONNECT = auto()
    SEND = auto()


@dataclass
class _Request:
    kind: _RequestKind
    future: asyncio.Future
    address: DeviceAddress | None = None
    data: bytes = b""


def _write_all(transport: Transport, data: bytes) -> None:
    transport.write(data)
    transport.flush()


def _release(transport: Transport) -> None:
    """Flush and close a transport, discarding any teardown error."""
    try:
        transport.flush()
    except Exception as e:
        logger.warning("Ignoring error while flushing transport: %s", e)
    try:
        transport.close()
    except Exception as e:
        logger.warning("Ignoring error while closing transport: %s", e)


class ConnectionManager:
    """Owns the single link to the robot.

    Args:
        transport_factory: Builds an unopened Transport for an address.
    """

    def __init__(self, transport_factory: TransportFactory) -> None:
        self._transport_factory = transport_factory
        self._state = ConnectionState.DISCONNECTED
        self._address: DeviceAddress | None = None
        self._transport: Transport | None = None
        self._pending: Transport | None = None
        self._cancel_connect = False
        self._last_error: RemoteControlError | None = None

        self._queue: asyncio.Queue[_Request] | None = None
        self._worker: asyncio.Task | None = None
        self._executor: ThreadPoolExecutor | None = None

    async def __aenter__(self) -> ConnectionManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True only while a transport is open."""
        return self._state is ConnectionState.CONNECTED

    @property
    def address(self) -> DeviceAddress | None:
        """Address of the current or most recent connection."""
        return self._address

    @property
    def last_error(self) -> RemoteControlError | None:
        """Most recent connect or send failure, cleared by a successful connect."""
        return self._last_error

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def connect(self, address: DeviceAddress) -> None:
        """Open the link to the robot at address.

        Args:
            address: Validated device address.

        Raises:
            AlreadyConnectedError: If connecting or connected. Nothing is queued.
            PermissionDeniedError: If the platform refused the radio operation.
            DeviceUnreachableError: If the transport could not be created or opened.
            ConnectCancelledError: If disconnect() interrupted the attempt.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            raise AlreadyConnectedError(
                f"Already {self._state.name.lower()} to {self._address}"
            )
        self._address = address
        self._cancel_connect = False
        self._set_state(ConnectionState.CONNECTING)
        await self._submit(_RequestKind.CONNECT, address=address)

    async def disconnect(self) -> None:
        """Close the link. Never fails; a no-op when already disconnected.

        Sends queued before this call are written first. An in-flight
        connect is interrupted.
        """
        if self._state is ConnectionState.DISCONNECTED:
            return
        if self._state is ConnectionState.FAILED:
            self._set_state(ConnectionState.DISCONNECTED)
            return
        if self._state is ConnectionState.CONNECTING:
            self._cancel_connect = True
            pending = self._pending
            if pending is not None:
                try:
                    pending.abort()
                except Exception as e:
                    logger.debug("Ignoring error while aborting connect: %s", e)
        await self._submit(_RequestKind.DISCONNECT)

    async def send(self, data: bytes) -> None:
        """Write one encoded command to the robot.

        Args:
            data: Protocol bytes.

        Raises:
            NotConnectedError: If not connected. No I/O is attempted.
            WriteFailureError: If the write failed. The link stays CONNECTED.
        """
        if self._state is not ConnectionState.CONNECTED:
            raise NotConnectedError(f"Cannot send {data!r}: not connected.")
        await self._submit(_RequestKind.SEND, data=data)

    async def close(self) -> None:
        """Disconnect and stop the worker and its I/O thread."""
        await self.disconnect()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._queue = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _submit(self, kind: _RequestKind, **fields: Any) -> asyncio.Future:
        """Queue a request and return the future the worker will resolve.

        Enqueues synchronously so requests keep their call order.
        """
        self._ensure_worker()
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_Request(kind, future, **fields))
        return future

    def _ensure_worker(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="vacremote-io"
            )
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._worker_loop())

    async def _worker_loop(self) -> None:
        """Process requests strictly one at a time."""
        while True:
            request = await self._queue.get()
            try:
                await self._dispatch(request)
            except Exception as e:
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                if not request.future.done():
                    request.future.set_result(None)
            finally:
                self._queue.task_done()

    async def _dispatch(self, request: _Request) -> None:
        if request.kind is _RequestKind.CONNECT:
            await self._do_connect(request.address)
        elif request.kind is _RequestKind.DISCONNECT:
            await self._do_disconnect()
        elif request.kind is _RequestKind.SEND:
            await self._do_send(request.data)

    async def _run_io(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def _do_connect(self, address: DeviceAddress) -> None:
        if self._cancel_connect:
            self._set_state(ConnectionState.DISCONNECTED)
            raise ConnectCancelledError(f"Connect to {address} cancelled.")

        transport: Transport | None = None
        try:
            transport = self._transport_factory(address)
            self._pending = transport
            await self._run_io(transport.open)
        except Exception as e:
            self._pending = None
            if transport is not None:
                await self._run_io(_release, transport)
            if self._cancel_connect:
                self._set_state(ConnectionState.DISCONNECTED)
                raise ConnectCancelledError(f"Connect to {address} cancelled.") from e
            if isinstance(e, PermissionError):
                error = PermissionDeniedError(f"Permission denied connecting to {address}: {e}")
            else:
                error = DeviceUnreachableError(f"Could not connect to {address}: {e}")
            logger.error("%s", error)
            self._last_error = error
            self._set_state(ConnectionState.FAILED)
            raise error from e
        self._pending = None

        if self._cancel_connect:
            await self._run_io(_release, transport)
            self._set_state(ConnectionState.DISCONNECTED)
            raise ConnectCancelledError(f"Connect to {address} cancelled.")

        self._transport = transport
        self._last_error = None
        self._set_state(ConnectionState.CONNECTED)
        logger.info("Connected to %s", address)

    async def _do_disconnect(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            await self._run_io(_release, transport)
            logger.info("Disconnected from %s", self._address)
        # A connect queued after this disconnect may already own the state;
        # it clears the cancel flag, so CONNECTING with the flag set is stale.
        if self._state is ConnectionState.CONNECTED or (
            self._state is ConnectionState.CONNECTING and self._cancel_connect
        ):
            self._set_state(ConnectionState.DISCONNECTED)

    async def _do_send(self, data: bytes) -> None:
        transport = self._transport
        if transport is None:
            raise NotConnectedError(f"Cannot send {data!r}: link was closed.")
        try:
            await self._run_io(_write_all, transport, data)
        except OSError as e:
            error = WriteFailureError(f"Write of {data!r} failed: {e}")
            logger.warning("%s", error)
            self._last_error = error
            raise error from e
        logger.debug("Sent %r", data)

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("Connection state: %s -> %s", self._state.name, state.name)
        self._state = state
