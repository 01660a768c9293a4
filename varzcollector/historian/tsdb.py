"""OpenTSDB ``put`` protocol adapter."""

from __future__ import annotations

import time
from collections.abc import Callable

from ..model import MetricRecord
from ..type_aliases import HostAddress, PortNumber, TagValue
from .base import HistorianAdapter
from .connection import ReconnectingConnection


def _tag_value(value: TagValue) -> str:
    if isinstance(value, (list, tuple)):
        value = "-".join(str(item) for item in value)
    # the put protocol splits on whitespace
    return str(value).replace(" ", "_")


def format_put_command(record: MetricRecord, now: int) -> str:
    """``put <metric> <timestamp> <value> <tag=value>...`` with tags sorted by key."""
    timestamp = record.timestamp if record.timestamp is not None else now
    tags = " ".join(
        f"{key}={_tag_value(value)}" for key, value in sorted(record.tags.items())
    )
    return f"put {record.key} {timestamp} {record.value} {tags}\n"


class TsdbHistorian(HistorianAdapter):
    name = "tsdb"

    def __init__(
        self,
        host: HostAddress,
        port: PortNumber,
        *,
        connection: ReconnectingConnection | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self.connection = connection or ReconnectingConnection("tsdb", host, port)
        self.clock = clock

    async def start(self) -> None:
        await self.connection.connect()

    def send_data(self, record: MetricRecord) -> None:
        self.connection.send(format_put_command(record, int(self.clock())))

    async def close(self) -> None:
        await self.connection.close()
