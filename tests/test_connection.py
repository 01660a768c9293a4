"""Tests for the reconnecting TCP connection used by line-protocol backends."""

import asyncio
import socket

import pytest

from varzcollector.exceptions import BackendConnectionError
from varzcollector.historian.connection import ReconnectingConnection


class LineServer:
    def __init__(self):
        self.lines: list[bytes] = []
        self.writers: list[asyncio.StreamWriter] = []
        self.received = asyncio.Event()
        self.server: asyncio.Server | None = None

    async def start(self, port=0):
        self.server = await asyncio.start_server(self._handle, "127.0.0.1", port)
        return self.server.sockets[0].getsockname()[1]

    async def _handle(self, reader, writer):
        self.writers.append(writer)
        while line := await reader.readline():
            self.lines.append(line)
            self.received.set()

    async def stop(self):
        for writer in self.writers:
            writer.close()
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()


def _free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


async def _wait_for(predicate, timeout=5.0):
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


async def test_sends_lines():
    server = LineServer()
    port = await server.start()
    connection = ReconnectingConnection("test", "127.0.0.1", port)
    try:
        await connection.connect()
        assert connection.connected

        assert connection.send("put x 1 1 job=a\n")
        await asyncio.wait_for(server.received.wait(), timeout=5)
        assert server.lines == [b"put x 1 1 job=a\n"]
    finally:
        await connection.close()
        await server.stop()


def test_send_before_connect_drops_line():
    connection = ReconnectingConnection("test", "127.0.0.1", 2003)

    assert not connection.connected
    assert not connection.send("early\n")
    assert not connection.send("early\n")
    assert connection.dropped_lines == 2


async def test_unresolvable_host_is_fatal():
    connection = ReconnectingConnection("test", "no-such-host.invalid", 2003)
    with pytest.raises(BackendConnectionError):
        await connection.connect()


async def test_refused_connection_drops_lines_and_retries(log_messages):
    port = _free_port()
    connection = ReconnectingConnection("test", "127.0.0.1", port, reconnect_delay=0.05)
    server = LineServer()
    try:
        await connection.connect()
        assert not connection.connected
        assert not connection.send("lost\n")
        assert connection.dropped_lines == 1
        assert any("collector.connection.failed name=test" in m for m in log_messages)

        await server.start(port)
        await _wait_for(lambda: connection.connected)
        assert connection.send("found\n")
        await asyncio.wait_for(server.received.wait(), timeout=5)
        assert server.lines == [b"found\n"]
    finally:
        await connection.close()
        await server.stop()


async def test_reconnects_after_peer_closes(log_messages):
    server = LineServer()
    port = await server.start()
    connection = ReconnectingConnection("test", "127.0.0.1", port, reconnect_delay=0.05)
    try:
        await connection.connect()
        await _wait_for(lambda: len(server.writers) == 1)

        server.writers[0].close()
        await _wait_for(lambda: any("collector.connection.lost" in m for m in log_messages))
        await _wait_for(lambda: connection.connected and len(server.writers) == 2)
    finally:
        await connection.close()
        await server.stop()
