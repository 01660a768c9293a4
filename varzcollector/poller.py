"""
Status and health poller.

Every registered instance is fetched independently as its own asyncio task,
bounded by a semaphore so a slow or hung instance only ever occupies one slot.
Results are processed on the event loop once the response has been read, so
metric construction and delivery stay single-threaded.
"""

from __future__ import annotations

import asyncio
import base64
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import aiohttp
from loguru import logger

from .components import get_job_tags
from .config import CollectorSettings
from .handlers import HandlerRegistry, MetricSink
from .model import MetricRecord, PollContext, RegistryEntry
from .registry import ComponentRegistry
from .serialization import decode_text, loads_object
from .type_aliases import ComponentType, Credentials, Timestamp


class EndpointType(Enum):
    """The two endpoints polled on every instance."""

    STATUS = "varz"
    HEALTH = "healthz"


@dataclass(frozen=True, slots=True)
class FetchResult:
    """A successful (2xx) response from one instance."""

    job: ComponentType
    entry: RegistryEntry
    uri: str
    status: int
    raw: bytes
    charset: str | None = None

    @property
    def body(self) -> str:
        return decode_text(self.raw, self.charset)


def authorization_header(credentials: Credentials) -> str:
    """``Basic <base64(user:pass)>`` without line breaks, however long."""
    user, password = credentials
    token = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def health_value(body: str) -> int:
    return 1 if body.strip().lower() == "ok" else 0


class Poller:
    def __init__(
        self,
        settings: CollectorSettings,
        registry: ComponentRegistry,
        historian: MetricSink,
        handlers: HandlerRegistry,
        *,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.historian = historian
        self.handlers = handlers
        self.clock = clock
        self._session = session
        self._owns_session = session is None
        self._semaphore = asyncio.Semaphore(settings.max_concurrent_fetches)
        self._inflight: set[asyncio.Task[None]] = set()

    def path_for(self, endpoint: EndpointType) -> str:
        if endpoint is EndpointType.STATUS:
            return self.settings.status_path
        return self.settings.health_path

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.http_timeout)
            )
            self._owns_session = True
        return self._session

    def fetch_varz(self) -> list[asyncio.Task[None]]:
        return self.fetch(EndpointType.STATUS)

    def fetch_healthz(self) -> list[asyncio.Task[None]]:
        return self.fetch(EndpointType.HEALTH)

    def fetch(self, endpoint: EndpointType) -> list[asyncio.Task[None]]:
        """Start one fetch task per registered instance with usable credentials."""
        tasks: list[asyncio.Task[None]] = []
        for job, entry in self.registry.entries():
            if not entry.credentials_ok():
                logger.warning(
                    f"collector.credentials.invalid job={job} host={entry.host} "
                    f"index={entry.index}"
                )
                continue

            task = asyncio.create_task(self._fetch_instance(endpoint, job, entry))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            tasks.append(task)
        return tasks

    async def _fetch_instance(
        self, endpoint: EndpointType, job: ComponentType, entry: RegistryEntry
    ) -> None:
        kind = endpoint.value
        uri = f"http://{entry.host}/{self.path_for(endpoint)}"
        logger.debug(
            f"collector.{kind}.update host={entry.host} index={entry.index} uri={uri}"
        )

        async with self._semaphore:
            try:
                session = self._ensure_session()
                async with session.get(
                    uri,
                    headers={"Authorization": authorization_header(entry.credentials)},  # type: ignore[arg-type]
                ) as response:
                    raw = await response.read()
                    status = response.status
                    charset = response.charset
            except (aiohttp.ClientError, TimeoutError, OSError) as e:
                self._log_fetch_error(kind, entry.host, str(e) or repr(e))
                return

        if not 200 <= status < 300:
            self._log_fetch_error(
                kind, entry.host, raw.decode("utf-8", errors="replace")
            )
            return

        result = FetchResult(
            job=job, entry=entry, uri=uri, status=status, raw=raw, charset=charset
        )
        try:
            if endpoint is EndpointType.STATUS:
                self.process_varz(result)
            else:
                self.process_healthz(result)
        except Exception as e:
            logger.opt(exception=e).error(
                f"collector.{kind}.processing-failed error={e!r} request_uri={uri} "
                f"response={raw[:1000]!r} response_code={status}"
            )

    def _log_fetch_error(self, kind: str, host: str, message: str) -> None:
        logger.warning(f"collector.{kind}.failed host={host} error={message}")

    def _now(self) -> Timestamp:
        return int(self.clock())

    def process_varz(self, result: FetchResult) -> None:
        """Parse a status body and hand it to the component's handler."""
        varz = loads_object(result.body, "varz")
        handler = self.handlers.handler(result.job)
        logger.debug(f"collector.job.process job={result.job} handler={handler!r}")
        handler.do_process(PollContext(result.entry.index, self._now(), varz))

    def process_healthz(self, result: FetchResult) -> None:
        """Send the ``healthy`` metric directly, bypassing the handlers."""
        entry = result.entry
        logger.info(
            f"collector.healthz-metrics.sending job={result.job} index={entry.index}"
        )
        tags = {
            **get_job_tags(result.job),
            "job": result.job,
            "index": entry.index,
            "deployment": self.settings.deployment_name,
            "ip": entry.ip,
        }
        self.historian.send_data(
            MetricRecord(
                key="healthy",
                timestamp=self._now(),
                value=health_value(result.body),
                tags=tags,
            )
        )

    async def wait_idle(self) -> None:
        """Wait for every fetch started so far to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def close(self) -> None:
        await self.wait_idle()
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
