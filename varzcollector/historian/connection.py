"""
Persistent, self-healing TCP connection for line-oriented backends.

The first connection attempt resolves the peer address; a host that cannot be
resolved at all makes the backend unusable for the life of the process and
raises :class:`BackendConnectionError`. Once resolved, refused or dropped
connections are retried after a fixed delay.
"""

from __future__ import annotations

import asyncio
import contextlib
import socket

from loguru import logger

from ..exceptions import BackendConnectionError
from ..type_aliases import DurationSeconds, HostAddress, PortNumber

DEFAULT_RECONNECT_DELAY: DurationSeconds = 1.0


class ReconnectingConnection:
    def __init__(
        self,
        name: str,
        host: HostAddress,
        port: PortNumber,
        reconnect_delay: DurationSeconds = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        self.name = name
        self.host = host
        self.port = port
        self.reconnect_delay = reconnect_delay
        self._writer: asyncio.StreamWriter | None = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._closing = False
        self.dropped_lines = 0

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        """Resolve the peer and open the first connection."""
        loop = asyncio.get_running_loop()
        try:
            await loop.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise BackendConnectionError(
                f"{self.name}: cannot resolve {self.host}:{self.port}: {e}"
            ) from e

        await self._open()

    async def _open(self) -> None:
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            logger.warning(
                f"collector.connection.failed name={self.name} "
                f"host={self.host} port={self.port} error={e!r}"
            )
            self._schedule_reconnect()
            return

        self._writer = writer
        self._monitor_task = asyncio.create_task(self._monitor(reader))
        logger.info(
            f"collector.connection.established name={self.name} "
            f"host={self.host} port={self.port}"
        )

    async def _monitor(self, reader: asyncio.StreamReader) -> None:
        """Watch the read side; EOF or a socket error means the peer is gone."""
        try:
            while data := await reader.read(4096):
                logger.debug(
                    f"collector.connection.received name={self.name} data={data!r}"
                )
        except (ConnectionError, OSError) as e:
            logger.debug(f"collector.connection.error name={self.name} error={e!r}")

        if self._closing:
            return

        logger.warning(
            f"collector.connection.lost name={self.name} "
            f"host={self.host} port={self.port}"
        )
        if self._writer is not None:
            self._writer.close()
        self._writer = None
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closing or self._reconnect_task is not None:
            return
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        await asyncio.sleep(self.reconnect_delay)
        self._reconnect_task = None
        logger.info(f"collector.connection.reconnecting name={self.name}")
        await self._open()

    def send(self, line: str) -> bool:
        """Write one line; lines sent while disconnected are dropped."""
        writer = self._writer
        if writer is None or writer.is_closing():
            self.dropped_lines += 1
            logger.debug(f"collector.connection.dropped name={self.name} line={line!r}")
            return False

        writer.write(line.encode("ascii", errors="replace"))
        return True

    async def close(self) -> None:
        self._closing = True
        for task in (self._reconnect_task, self._monitor_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if self._writer is not None:
            self._writer.close()
            with contextlib.suppress(Exception):
                await self._writer.wait_closed()
        self._writer = None
