"""
The collector: discovery, periodic polling and self metrics.

Wires the message bus, the component registry, the poller and the historian
together and drives them from a handful of fixed-period timers.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from .bus import MessageBus
from .components import COLLECTOR_COMPONENT
from .config import CollectorSettings
from .handlers import HandlerRegistry, MetricSink
from .model import PollContext
from .poller import Poller
from .registry import ComponentRegistry
from .rolling import RollingMetric
from .type_aliases import DurationSeconds, JsonDict, LatencyMilliseconds, Subject

ANNOUNCE_SUBJECT: Subject = "vcap.component.announce"
DISCOVER_SUBJECT: Subject = "vcap.component.discover"
PING_SUBJECT: Subject = "collector.nats.ping"

LATENCY_WINDOW = 60


def ping_latency(payload: JsonDict, now: float) -> LatencyMilliseconds:
    """One-way latency in milliseconds from a ping's ``timestamp`` field."""
    return int((now - float(payload["timestamp"])) * 1000)


class Collector:
    """Collector daemon. Call :meth:`start`, then :meth:`run_forever`."""

    def __init__(
        self,
        settings: CollectorSettings,
        bus: MessageBus,
        historian: MetricSink,
        *,
        poller: Poller | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.bus = bus
        self.historian = historian
        self.clock = clock
        self.registry = ComponentRegistry(clock=lambda: int(self.clock()))
        self.handlers = HandlerRegistry(historian, settings.deployment_name)
        self.poller = poller or Poller(
            settings, self.registry, historian, self.handlers, clock=clock
        )
        self.nats_latency = RollingMetric(LATENCY_WINDOW)
        self.inbox: Subject | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Subscribe, request the initial discovery and start the timers."""
        self.inbox = self.bus.new_inbox()
        await self.bus.subscribe(ANNOUNCE_SUBJECT, self.process_component_discovery)
        await self.bus.subscribe(self.inbox, self.process_component_discovery)
        await self.bus.subscribe(PING_SUBJECT, self.process_nats_ping)

        await self.request_discovery()

        intervals = self.settings.intervals
        self._every("discover", intervals.discover, self.request_discovery)
        self._every("varz", intervals.varz, self._fetch_varz)
        self._every("healthz", intervals.healthz, self._fetch_healthz)
        self._every("prune", intervals.prune, self._prune)
        self._every("nats-ping", intervals.nats_ping, self.publish_ping)
        self._every("local-metrics", intervals.local_metrics, self._local_metrics)

        logger.info(
            f"collector.started deployment={self.settings.deployment_name} "
            f"index={self.settings.index}"
        )

    def _every(
        self,
        name: str,
        interval: DurationSeconds,
        action: Callable[[], Awaitable[Any]],
    ) -> None:
        task = asyncio.create_task(
            self._run_periodic(name, interval, action), name=f"collector-{name}"
        )
        self._tasks.append(task)

    async def _run_periodic(
        self,
        name: str,
        interval: DurationSeconds,
        action: Callable[[], Awaitable[Any]],
    ) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                break
            except TimeoutError:
                pass

            try:
                await action()
            except Exception as e:
                logger.opt(exception=e).error(
                    f"collector.timer.failed timer={name} error={e!r}"
                )

    async def request_discovery(self) -> None:
        logger.debug("collector.component.discover")
        await self.bus.publish(DISCOVER_SUBJECT, reply=self.inbox)

    async def _fetch_varz(self) -> None:
        self.poller.fetch_varz()

    async def _fetch_healthz(self) -> None:
        self.poller.fetch_healthz()

    async def _prune(self) -> None:
        self.prune_components()

    async def _local_metrics(self) -> None:
        self.send_local_metrics()

    def process_component_discovery(self, message: JsonDict) -> None:
        self.registry.record(message)

    def prune_components(self) -> int:
        return self.registry.prune(int(self.clock()), self.settings.intervals.prune)

    def process_nats_ping(self, message: JsonDict) -> None:
        try:
            latency = ping_latency(message, self.clock())
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"collector.nats-ping.invalid message={message!r} error={e!r}")
            return
        self.nats_latency.add(latency)

    async def publish_ping(self) -> None:
        await self.bus.publish(PING_SUBJECT, {"timestamp": str(self.clock())})

    def send_local_metrics(self) -> None:
        """Report the collector's own bus latency as ``nats.latency.1m``."""
        logger.info("collector.nats-latency.sending")
        context = PollContext(self.settings.index, int(self.clock()), {})
        handler = self.handlers.handler(COLLECTOR_COMPONENT)
        handler.send_latency_metric("nats.latency.1m", self.nats_latency.value, context)

    async def run_forever(self) -> None:
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def stop(self) -> None:
        """Stop the timers and wait for in-flight fetches; the bus is left open."""
        self._shutdown_event.set()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
        await self.poller.close()
        logger.info("collector.stopped")
