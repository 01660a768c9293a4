"""AWS CloudWatch adapter."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from ..config import CloudWatchSettings
from ..model import MetricRecord
from ..type_aliases import Tags
from .base import HistorianAdapter


def dimensions_for(tags: Tags) -> list[dict[str, str]]:
    """One dimension per tag; sequence values produce one dimension per item."""
    dimensions: list[dict[str, str]] = []
    for key, value in tags.items():
        values = value if isinstance(value, (list, tuple)) else [value]
        dimensions.extend({"Name": str(key), "Value": str(item)} for item in values)
    return dimensions


def iso_timestamp(timestamp: int | float | None) -> str:
    moment = (
        datetime.now(UTC)
        if timestamp is None
        else datetime.fromtimestamp(timestamp, UTC)
    )
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class CloudWatchHistorian(HistorianAdapter):
    name = "aws_cloud_watch"

    def __init__(self, settings: CloudWatchSettings, *, client: Any = None) -> None:
        super().__init__()
        self.settings = settings
        self.client = client or boto3.client(
            "cloudwatch",
            region_name=settings.region,
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
        )

    def metric_datum(self, record: MetricRecord) -> dict[str, Any]:
        return {
            "MetricName": record.key,
            "Value": float(record.value),
            "Timestamp": iso_timestamp(record.timestamp),
            "Dimensions": dimensions_for(record.tags),
        }

    def send_data(self, record: MetricRecord) -> None:
        try:
            datum = self.metric_datum(record)
        except (TypeError, ValueError):
            logger.error(
                f"collector.emit-cloudwatch.fail key={record.key} "
                f"error=non-numeric value {record.value!r}"
            )
            return

        loop = asyncio.get_running_loop()
        self._spawn(loop.run_in_executor(None, self._put_metric_data, datum))

    def _put_metric_data(self, datum: dict[str, Any]) -> None:
        # runs in the default executor; the boto3 client call blocks
        try:
            self.client.put_metric_data(
                Namespace=self.settings.namespace, MetricData=[datum]
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning(
                f"collector.emit-cloudwatch.fail key={datum['MetricName']} error={e!r}"
            )
