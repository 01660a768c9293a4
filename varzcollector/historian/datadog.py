"""
Batched DataDog series adapter.

Records are buffered and flushed as one ``POST`` once the buffer reaches the
configured size or the time since the last flush reaches the configured
threshold. The buffer is handed off and cleared before the request is made,
so a batch lost mid-flush is not retried.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import aiohttp
from loguru import logger

from ..config import DataDogSettings
from ..model import MetricRecord
from ..serialization import dumps
from ..type_aliases import Tags
from .base import HistorianAdapter

METRIC_PREFIX = "cf.collector."

REQUEST_TIMEOUT_SECONDS = 30


def render_tags(tags: Tags) -> list[str]:
    """``key:value`` strings; sequence values produce one entry per item."""
    rendered: list[str] = []
    for key, value in tags.items():
        if isinstance(value, (list, tuple)):
            rendered.extend(f"{key}:{item}" for item in value)
        else:
            rendered.append(f"{key}:{value}")
    return rendered


class DataDogHistorian(HistorianAdapter):
    name = "datadog"

    def __init__(
        self,
        settings: DataDogSettings,
        *,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.clock = clock
        self._session = session
        self._owns_session = session is None
        self._buffer: list[dict[str, Any]] = []
        self._last_flush = clock()

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def to_point(self, record: MetricRecord) -> dict[str, Any]:
        timestamp = (
            record.timestamp if record.timestamp is not None else int(self.clock())
        )
        return {
            "metric": f"{METRIC_PREFIX}{record.key}",
            "points": [[timestamp, record.value]],
            "type": "gauge",
            "tags": render_tags(record.tags),
        }

    def send_data(self, record: MetricRecord) -> None:
        self._buffer.append(self.to_point(record))

        now = self.clock()
        if (
            len(self._buffer) >= self.settings.data_threshold
            or now - self._last_flush >= self.settings.time_threshold_in_seconds
        ):
            batch, self._buffer = self._buffer, []
            self._last_flush = now
            self._spawn(self._post(batch, requested_at=now))

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS)
            )
            self._owns_session = True
        return self._session

    async def _post(self, batch: list[dict[str, Any]], requested_at: float) -> bool:
        body = dumps({"series": batch})
        session = self._ensure_session()

        success = False
        try:
            async with session.post(
                self.settings.url,
                params={"api_key": self.settings.api_key},
                data=body,
                headers={"Content-type": "application/json"},
            ) as response:
                success = 200 <= response.status < 300
                if not success:
                    response_text = await response.text(errors="replace")
                    logger.debug(
                        f"collector.emit-datadog.response status={response.status} "
                        f"body={response_text[:500]}"
                    )
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.debug(f"collector.emit-datadog.error error={e!r}")

        lag = int(self.clock() - requested_at)
        if success:
            logger.info(
                f"collector.emit-datadog.success number_of_metrics={len(batch)} "
                f"lag_in_seconds={lag}"
            )
        else:
            logger.warning(
                f"collector.emit-datadog.fail number_of_metrics={len(batch)} "
                f"lag_in_seconds={lag}"
            )
        return success

    async def close(self) -> None:
        """Post whatever is still buffered, then wait for in-flight posts."""
        if self._buffer:
            batch, self._buffer = self._buffer, []
            self._spawn(self._post(batch, requested_at=self.clock()))
        await self.drain()
        if self._owns_session and self._session is not None:
            await self._session.close()
