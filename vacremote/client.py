"""Thread-facing remote client.

Runs the connection manager and session on a private asyncio loop in a
daemon thread, so a synchronous UI can issue intents without blocking.
Every intent returns a concurrent.futures.Future; call .result() only
where blocking is acceptable.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Coroutine

from vacremote.core.config import Settings
from vacremote.core.connection import ConnectionManager
from vacremote.core.errors import ErrorKind
from vacremote.core.session import RemoteSession
from vacremote.protocol.commands import Direction
from vacremote.transport.factory import create_transport_factory
from vacremote.transport.interfaces import TransportFactory

logger = logging.getLogger(__name__)


class RemoteClient:
    """Owns the background loop, the connection and the session.

    Args:
        transport_factory: Builds transports for the connection manager.
        default_speed: Initial session speed in percent.
        max_write_failures: Session write-failure escalation threshold.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        default_speed: int = 50,
        max_write_failures: int = 3,
    ) -> None:
        self.connection = ConnectionManager(transport_factory)
        self.session = RemoteSession(
            self.connection,
            default_speed=default_speed,
            max_write_failures=max_write_failures,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> RemoteClient:
        """Build a client using the transport chosen in settings."""
        return cls(
            create_transport_factory(settings),
            default_speed=settings.default_speed,
            max_write_failures=settings.max_write_failures,
        )

    def __enter__(self) -> RemoteClient:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Loop management
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background loop thread (idempotent)."""
        if self._loop is not None:
            return
        self._loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _runner() -> None:
            asyncio.set_event_loop(self._loop)
            self._loop.call_soon(ready.set)
            self._loop.run_forever()

        self._thread = threading.Thread(
            target=_runner, name="vacremote-loop", daemon=True
        )
        self._thread.start()
        ready.wait()
        logger.debug("Remote client loop started.")

    def close(self, timeout: float = 5.0) -> None:
        """Disconnect, then stop the background loop."""
        if self._loop is None:
            return
        try:
            self._submit(self.connection.close()).result(timeout)
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            if self._thread is not None:
                self._thread.join(timeout)
            self._loop.close()
            self._loop = None
            self._thread = None
            logger.debug("Remote client loop stopped.")

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        if self._loop is None:
            coro.close()
            raise RuntimeError("Remote client is not started.")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def connect(self, address: str) -> Future:
        """Connect to address; the future resolves to True on success."""
        return self._submit(self.session.connect(address))

    def disconnect(self) -> Future:
        return self._submit(self.session.disconnect())

    def set_vacuum(self, on: bool) -> Future:
        return self._submit(self.session.set_vacuum(on))

    def toggle_vacuum(self) -> Future:
        return self._submit(self.session.toggle_vacuum())

    def set_speed(self, value: int) -> Future:
        return self._submit(self.session.set_speed(value))

    def start_move(self, direction: Direction) -> Future:
        return self._submit(self.session.start_move(direction))

    def end_move(self, direction: Direction | None = None) -> Future:
        return self._submit(self.session.end_move(direction))

    def stop_now(self) -> Future:
        return self._submit(self.session.stop_now())

    # ------------------------------------------------------------------
    # Observable state (plain reads; values may lag an in-flight intent)
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    @property
    def vacuum_on(self) -> bool:
        return self.session.vacuum_on

    @property
    def speed(self) -> int:
        return self.session.speed

    @property
    def last_error(self) -> ErrorKind | None:
        return self.session.last_error
