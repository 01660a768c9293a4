"""Single-record HTTP PUT adapter for the CF metrics service."""

from __future__ import annotations

from typing import Any

import aiohttp
from loguru import logger

from ..config import CfMetricsSettings
from ..model import MetricRecord
from ..serialization import dumps
from .base import HistorianAdapter

REQUEST_TIMEOUT_SECONDS = 30


class CfMetricsHistorian(HistorianAdapter):
    name = "cf_metrics"

    def __init__(
        self,
        settings: CfMetricsSettings,
        deployment: str,
        *,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.deployment = deployment
        self._session = session
        self._owns_session = session is None

    def url_for(self, record: MetricRecord) -> str:
        host = self.settings.host
        if "://" not in host:
            host = f"https://{host}"
        return f"{host.rstrip('/')}/metrics/{record.key}/values"

    def body_for(self, record: MetricRecord) -> dict[str, Any]:
        body: dict[str, Any] = {str(key): value for key, value in record.tags.items()}
        body["value"] = record.value
        body["deployment"] = self.deployment
        return body

    def send_data(self, record: MetricRecord) -> None:
        self._spawn(self._put(record))

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS)
            )
            self._owns_session = True
        return self._session

    async def _put(self, record: MetricRecord) -> bool:
        url = self.url_for(record)
        session = self._ensure_session()
        try:
            async with session.put(
                url,
                data=dumps(self.body_for(record)),
                headers={"Content-type": "application/json"},
            ) as response:
                if 200 <= response.status < 300:
                    logger.debug(f"collector.emit-cfmetrics.success key={record.key}")
                    return True
                response_text = await response.text(errors="replace")
                logger.warning(
                    f"collector.emit-cfmetrics.fail key={record.key} "
                    f"status={response.status} body={response_text[:500]}"
                )
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning(f"collector.emit-cfmetrics.fail key={record.key} error={e!r}")
        return False

    async def close(self) -> None:
        await self.drain()
        if self._owns_session and self._session is not None:
            await self._session.close()
