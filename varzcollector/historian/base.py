"""Common adapter plumbing for historian backends."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any

from loguru import logger

from ..model import MetricRecord


class HistorianAdapter(ABC):
    """
    One delivery backend.

    ``send_data`` is called on the event loop for every record and must not
    block: adapters that talk HTTP or call blocking SDKs hand the work to a
    background task and return immediately.
    """

    name: str = "adapter"

    def __init__(self) -> None:
        self._pending: set[asyncio.Future[Any]] = set()

    @abstractmethod
    def send_data(self, record: MetricRecord) -> None:
        """Deliver (or schedule delivery of) one record."""
        ...

    async def start(self) -> None:
        """Open connections; called once before the first record."""
        pass

    async def close(self) -> None:
        """Wait for in-flight deliveries and release resources."""
        await self.drain()

    def _spawn(self, work: Awaitable[Any]) -> asyncio.Future[Any]:
        future = asyncio.ensure_future(work)
        self._pending.add(future)
        future.add_done_callback(self._finished)
        return future

    def _finished(self, future: asyncio.Future[Any]) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"collector.emit-{self.name}.fail error={error!r}")

    async def drain(self) -> None:
        """Wait until every delivery started so far has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)
