"""
Historian: fan-out of metric records to every configured backend.

Each adapter is called in turn; a failure in one adapter is logged and never
stops delivery to the rest.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from ..config import CollectorSettings
from ..model import MetricRecord
from .base import HistorianAdapter
from .cf_metrics import CfMetricsHistorian
from .cloud_watch import CloudWatchHistorian
from .datadog import DataDogHistorian
from .graphite import GraphiteHistorian
from .tsdb import TsdbHistorian


class Historian:
    def __init__(self, adapters: Iterable[HistorianAdapter] = ()) -> None:
        self.adapters: list[HistorianAdapter] = list(adapters)

    def __repr__(self) -> str:
        return f"Historian(adapters={[adapter.name for adapter in self.adapters]})"

    def send_data(self, record: MetricRecord) -> None:
        if record.value is None:
            logger.warning(f"Received no value for {record.key}")
            return

        for adapter in self.adapters:
            try:
                adapter.send_data(record)
            except Exception as e:
                logger.warning(
                    f"collector.historian.send-failed adapter={adapter.name} "
                    f"key={record.key} error={e!r}"
                )

    async def start(self) -> None:
        """Open adapter connections. Connection errors that are fatal propagate."""
        for adapter in self.adapters:
            await adapter.start()
            logger.info(f"collector.historian.started adapter={adapter.name}")

    async def drain(self) -> None:
        for adapter in self.adapters:
            await adapter.drain()

    async def close(self) -> None:
        for adapter in self.adapters:
            try:
                await adapter.close()
            except Exception as e:
                logger.warning(
                    f"collector.historian.close-failed adapter={adapter.name} error={e!r}"
                )


def build_historian(settings: CollectorSettings) -> Historian:
    """Build a historian with one adapter per configured backend."""
    adapters: list[HistorianAdapter] = []

    if settings.tsdb is not None:
        adapters.append(TsdbHistorian(settings.tsdb.host, settings.tsdb.port))

    if settings.aws_cloud_watch is not None:
        adapters.append(CloudWatchHistorian(settings.aws_cloud_watch))

    if settings.datadog is not None:
        adapters.append(DataDogHistorian(settings.datadog))

    if settings.cf_metrics is not None:
        adapters.append(
            CfMetricsHistorian(settings.cf_metrics, settings.deployment_name)
        )

    if settings.graphite is not None:
        adapters.append(
            GraphiteHistorian(settings.graphite.host, settings.graphite.port)
        )

    if not adapters:
        logger.warning("collector.historian.no-backends metrics will be discarded")

    return Historian(adapters)


__all__ = [
    "CfMetricsHistorian",
    "CloudWatchHistorian",
    "DataDogHistorian",
    "GraphiteHistorian",
    "Historian",
    "HistorianAdapter",
    "TsdbHistorian",
    "build_historian",
]
