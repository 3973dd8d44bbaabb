"""Tests for the connection manager."""

from __future__ import annotations

import asyncio
import threading
from typing import AsyncIterator

import pytest

from vacremote.core.connection import ConnectionManager
from vacremote.core.errors import (
    AlreadyConnectedError,
    ConnectCancelledError,
    DeviceUnreachableError,
    ErrorKind,
    NotConnectedError,
    PermissionDeniedError,
    WriteFailureError,
)
from vacremote.core.state_machine import ConnectionState
from vacremote.protocol.address import parse_address
from vacremote.transport.stubs import StubTransportFactory

ADDRESS = parse_address("AA:BB:CC:DD:EE:FF")


@pytest.fixture
def factory() -> StubTransportFactory:
    return StubTransportFactory()


@pytest.fixture
async def manager(factory: StubTransportFactory) -> AsyncIterator[ConnectionManager]:
    async with ConnectionManager(factory) as mgr:
        yield mgr


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestConnectionState:
    def test_states_are_distinct(self) -> None:
        states = [ConnectionState.DISCONNECTED, ConnectionState.CONNECTING,
                  ConnectionState.CONNECTED, ConnectionState.FAILED]
        assert len(set(states)) == 4

    def test_initial_state_is_disconnected(self, factory: StubTransportFactory) -> None:
        mgr = ConnectionManager(factory)
        assert mgr.state == ConnectionState.DISCONNECTED
        assert not mgr.is_connected
        assert mgr.last_error is None


# ---------------------------------------------------------------------------
# connect
# ---------------------------------------------------------------------------


class TestConnect:
    async def test_connect_opens_transport(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)

        assert manager.state == ConnectionState.CONNECTED
        assert manager.is_connected
        assert manager.address == ADDRESS
        assert factory.last.address == ADDRESS
        assert factory.last.is_open()

    async def test_second_connect_is_rejected(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)

        with pytest.raises(AlreadyConnectedError):
            await manager.connect(parse_address("11:22:33:44:55:66"))

        assert manager.state == ConnectionState.CONNECTED
        assert len(factory.created) == 1

    async def test_connect_while_connecting_is_rejected_not_queued(self) -> None:
        gate = threading.Event()
        factory = StubTransportFactory(open_gate=gate)
        async with ConnectionManager(factory) as mgr:
            first = asyncio.create_task(mgr.connect(ADDRESS))
            await asyncio.sleep(0)
            assert mgr.state == ConnectionState.CONNECTING

            with pytest.raises(AlreadyConnectedError):
                await mgr.connect(ADDRESS)

            gate.set()
            await first
            assert mgr.state == ConnectionState.CONNECTED
            assert len(factory.created) == 1

    async def test_unreachable_device_fails(self) -> None:
        factory = StubTransportFactory(open_error=ConnectionRefusedError("host down"))
        async with ConnectionManager(factory) as mgr:
            with pytest.raises(DeviceUnreachableError) as exc_info:
                await mgr.connect(ADDRESS)

            assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)
            assert mgr.state == ConnectionState.FAILED
            assert not mgr.is_connected
            assert mgr.last_error.kind is ErrorKind.DEVICE_UNREACHABLE
            assert factory.last.close_calls == 1

    async def test_permission_denied(self) -> None:
        factory = StubTransportFactory(open_error=PermissionError("no radio access"))
        async with ConnectionManager(factory) as mgr:
            with pytest.raises(PermissionDeniedError):
                await mgr.connect(ADDRESS)
            assert mgr.state == ConnectionState.FAILED
            assert mgr.last_error.kind is ErrorKind.PERMISSION_DENIED

    async def test_retry_after_failure(self, factory: StubTransportFactory) -> None:
        factory.transport_kwargs["open_error"] = OSError("out of range")
        async with ConnectionManager(factory) as mgr:
            with pytest.raises(DeviceUnreachableError):
                await mgr.connect(ADDRESS)

            del factory.transport_kwargs["open_error"]
            await mgr.connect(ADDRESS)

            assert mgr.state == ConnectionState.CONNECTED
            assert mgr.last_error is None
            assert len(factory.created) == 2

    async def test_factory_error_fails_connect(self) -> None:
        def broken_factory(address):
            raise RuntimeError("no adapter")

        async with ConnectionManager(broken_factory) as mgr:
            with pytest.raises(DeviceUnreachableError) as exc_info:
                await mgr.connect(ADDRESS)

            assert isinstance(exc_info.value.__cause__, RuntimeError)
            assert mgr.state == ConnectionState.FAILED
            assert mgr.last_error.kind is ErrorKind.DEVICE_UNREACHABLE

            await mgr.disconnect()
            assert mgr.state == ConnectionState.DISCONNECTED

    async def test_recovers_after_factory_error(self) -> None:
        factory = StubTransportFactory()
        calls = []

        def flaky_factory(address):
            calls.append(address)
            if len(calls) == 1:
                raise RuntimeError("no adapter")
            return factory(address)

        async with ConnectionManager(flaky_factory) as mgr:
            with pytest.raises(DeviceUnreachableError):
                await mgr.connect(ADDRESS)
            await mgr.connect(ADDRESS)
            assert mgr.is_connected

    async def test_non_os_open_error_is_unreachable(self) -> None:
        factory = StubTransportFactory(open_error=ValueError("bad channel"))
        async with ConnectionManager(factory) as mgr:
            with pytest.raises(DeviceUnreachableError) as exc_info:
                await mgr.connect(ADDRESS)

            assert isinstance(exc_info.value.__cause__, ValueError)
            assert mgr.state == ConnectionState.FAILED
            assert factory.last.close_calls == 1

    async def test_no_automatic_retry(self) -> None:
        factory = StubTransportFactory(open_error=OSError("out of range"))
        async with ConnectionManager(factory) as mgr:
            with pytest.raises(DeviceUnreachableError):
                await mgr.connect(ADDRESS)
            await asyncio.sleep(0.05)
            assert len(factory.created) == 1
            assert factory.last.open_calls == 1


# ---------------------------------------------------------------------------
# disconnect
# ---------------------------------------------------------------------------


class TestDisconnect:
    async def test_disconnect_releases_transport(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)
        transport = factory.last

        await manager.disconnect()

        assert manager.state == ConnectionState.DISCONNECTED
        assert not transport.is_open()
        assert transport.flush_calls >= 1
        assert transport.close_calls == 1

    async def test_disconnect_twice_is_noop(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)

        await manager.disconnect()
        assert manager.state == ConnectionState.DISCONNECTED
        await manager.disconnect()
        assert manager.state == ConnectionState.DISCONNECTED
        assert factory.last.close_calls == 1

    async def test_disconnect_when_never_connected(self, manager: ConnectionManager) -> None:
        await manager.disconnect()
        assert manager.state == ConnectionState.DISCONNECTED

    async def test_disconnect_swallows_close_errors(self) -> None:
        factory = StubTransportFactory(close_error=OSError("socket already dead"))
        async with ConnectionManager(factory) as mgr:
            await mgr.connect(ADDRESS)
            await mgr.disconnect()
            assert mgr.state == ConnectionState.DISCONNECTED
            assert factory.last.close_calls == 1

    async def test_disconnect_from_failed(self) -> None:
        factory = StubTransportFactory(open_error=OSError("gone"))
        async with ConnectionManager(factory) as mgr:
            with pytest.raises(DeviceUnreachableError):
                await mgr.connect(ADDRESS)
            await mgr.disconnect()
            assert mgr.state == ConnectionState.DISCONNECTED

    async def test_reconnect_after_disconnect(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)
        await manager.disconnect()
        await manager.connect(ADDRESS)

        assert manager.is_connected
        assert len(factory.created) == 2
        assert not factory.created[0].is_open()
        assert factory.created[1].is_open()

    async def test_disconnect_interrupts_connect(self) -> None:
        gate = threading.Event()
        factory = StubTransportFactory(open_gate=gate)
        async with ConnectionManager(factory) as mgr:
            connect_task = asyncio.create_task(mgr.connect(ADDRESS))
            await _wait_for(lambda: factory.created and factory.last.open_calls == 1)

            await mgr.disconnect()

            with pytest.raises(ConnectCancelledError):
                await connect_task
            assert mgr.state == ConnectionState.DISCONNECTED
            assert not factory.last.is_open()
            assert factory.last.close_calls == 1

    async def test_disconnect_before_connect_starts(self) -> None:
        factory = StubTransportFactory()
        async with ConnectionManager(factory) as mgr:
            connect_task = asyncio.create_task(mgr.connect(ADDRESS))
            await asyncio.sleep(0)
            assert mgr.state == ConnectionState.CONNECTING

            await mgr.disconnect()

            with pytest.raises(ConnectCancelledError):
                await connect_task
            assert mgr.state == ConnectionState.DISCONNECTED
            assert factory.created == []


# ---------------------------------------------------------------------------
# send
# ---------------------------------------------------------------------------


class TestSend:
    async def test_send_writes_bytes(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)
        await manager.send(b"V1\n")
        assert factory.last.get_written_data() == b"V1\n"

    async def test_send_when_disconnected(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        with pytest.raises(NotConnectedError):
            await manager.send(b"F\n")
        assert factory.created == []
        assert manager.state == ConnectionState.DISCONNECTED

    async def test_send_after_disconnect(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)
        await manager.disconnect()
        with pytest.raises(NotConnectedError):
            await manager.send(b"F\n")
        assert factory.last.get_written_data() == b""

    async def test_write_failure_keeps_connection(self) -> None:
        factory = StubTransportFactory(write_error=BrokenPipeError("radio glitch"))
        async with ConnectionManager(factory) as mgr:
            await mgr.connect(ADDRESS)
            with pytest.raises(WriteFailureError):
                await mgr.send(b"F\n")
            assert mgr.state == ConnectionState.CONNECTED
            assert mgr.last_error.kind is ErrorKind.WRITE_FAILURE

    async def test_concurrent_sends_keep_order(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)
        lines = [f"S{n}\n".encode() for n in range(50)]

        await asyncio.gather(*(manager.send(line) for line in lines))

        assert factory.last.get_written_lines() == lines

    async def test_sends_queued_before_disconnect_complete(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)
        transport = factory.last

        send_a = asyncio.create_task(manager.send(b"F\n"))
        send_b = asyncio.create_task(manager.send(b"X\n"))
        disconnect = asyncio.create_task(manager.disconnect())
        await asyncio.gather(send_a, send_b, disconnect)

        assert transport.get_written_lines() == [b"F\n", b"X\n"]
        assert manager.state == ConnectionState.DISCONNECTED

    async def test_send_queued_after_disconnect_is_reported(
        self, manager: ConnectionManager, factory: StubTransportFactory
    ) -> None:
        await manager.connect(ADDRESS)

        disconnect = asyncio.create_task(manager.disconnect())
        late_send = asyncio.create_task(manager.send(b"F\n"))
        await disconnect

        with pytest.raises(NotConnectedError):
            await late_send
        assert factory.last.get_written_data() == b""


class TestClose:
    async def test_close_disconnects(self, factory: StubTransportFactory) -> None:
        mgr = ConnectionManager(factory)
        await mgr.connect(ADDRESS)
        await mgr.close()

        assert mgr.state == ConnectionState.DISCONNECTED
        assert not factory.last.is_open()

    async def test_manager_is_reusable_after_close(self, factory: StubTransportFactory) -> None:
        mgr = ConnectionManager(factory)
        await mgr.close()
        await mgr.connect(ADDRESS)
        assert mgr.is_connected
        await mgr.close()
