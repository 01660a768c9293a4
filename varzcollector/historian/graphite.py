"""Graphite plaintext (line protocol) adapter."""

from __future__ import annotations

import re
import time
from collections.abc import Callable

from loguru import logger

from ..exceptions import MetricFormatError
from ..model import MetricRecord
from ..type_aliases import HostAddress, PortNumber
from .base import HistorianAdapter
from .connection import ReconnectingConnection

# a plausible 10-digit epoch in seconds
TIMESTAMP_PATTERN = re.compile(r"^1[0-9]{9}$")

# router metrics whose component and status belong in the metric path
ROUTER_COMPONENT_METRICS = frozenset({"router.responses", "router.requests"})

MISSING_IP = "nil"


def metric_path(record: MetricRecord) -> str:
    """``<deployment>.<job>.<index>.<ip-with-dashes>.<key>[.<component>[.<status>]]``."""
    tags = record.tags
    deployment = tags.get("deployment")
    job = tags.get("job")
    index = tags.get("index")
    if deployment is None or job is None or index is None or not record.key:
        raise MetricFormatError(
            "Could not create metrics name from fields tags.deployment, "
            "tags.job, tags.index or key."
        )

    ip = tags.get("ip")
    ip_segment = str(ip).replace(".", "-") if ip is not None else MISSING_IP

    key = record.key
    if key in ROUTER_COMPONENT_METRICS and tags.get("component") is not None:
        key = f"{key}.{tags['component']}"
        if tags.get("status") is not None:
            key = f"{key}.{tags['status']}"

    return f"{deployment}.{job}.{index}.{ip_segment}.{key}"


def is_numeric(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class GraphiteHistorian(HistorianAdapter):
    name = "graphite"

    def __init__(
        self,
        host: HostAddress,
        port: PortNumber,
        *,
        connection: ReconnectingConnection | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self.connection = connection or ReconnectingConnection("graphite", host, port)
        self.clock = clock

    async def start(self) -> None:
        await self.connection.connect()

    def format_line(self, record: MetricRecord) -> str | None:
        try:
            path = metric_path(record)
        except MetricFormatError as e:
            logger.error(f"collector.create-graphite-key.fail: {e}")
            return None

        if not is_numeric(record.value):
            logger.error(
                f"collector.emit-graphite.fail: Value is not a float or int, got: {record.value}"
            )
            return None

        timestamp = record.timestamp
        if timestamp is None or not TIMESTAMP_PATTERN.match(str(timestamp)):
            timestamp = int(self.clock())

        return f"{path} {record.value} {timestamp}\n"

    def send_data(self, record: MetricRecord) -> None:
        line = self.format_line(record)
        if line is not None:
            self.connection.send(line)

    async def close(self) -> None:
        await self.connection.close()
