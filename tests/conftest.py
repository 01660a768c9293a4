"""Pytest configuration and shared fixtures for varzcollector tests.

Provides in-memory stand-ins for the message bus and the historian, a loguru
capture fixture, and a helper for running a local aiohttp server that plays
the part of a component's varz/healthz endpoints.
"""

from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from loguru import logger

from varzcollector.model import MetricRecord, PollContext
from varzcollector.type_aliases import JsonDict, Subject


class FakeMessageBus:
    """MessageBus that records publishes and lets tests deliver messages."""

    def __init__(self) -> None:
        self.subscriptions: dict[Subject, list[Callable[[JsonDict], None]]] = {}
        self.published: list[tuple[Subject, JsonDict | None, Subject | None]] = []
        self.connected = False
        self.closed = False
        self._inbox_count = 0

    async def connect(self) -> None:
        self.connected = True

    async def subscribe(
        self, subject: Subject, callback: Callable[[JsonDict], None]
    ) -> None:
        self.subscriptions.setdefault(subject, []).append(callback)

    async def publish(
        self,
        subject: Subject,
        payload: JsonDict | None = None,
        reply: Subject | None = None,
    ) -> None:
        self.published.append((subject, payload, reply))

    def new_inbox(self) -> Subject:
        self._inbox_count += 1
        return f"_INBOX.test.{self._inbox_count}"

    async def close(self) -> None:
        self.closed = True

    def deliver(self, subject: Subject, message: JsonDict) -> None:
        for callback in self.subscriptions.get(subject, []):
            callback(message)

    def published_to(self, subject: Subject) -> list[tuple[JsonDict | None, Subject | None]]:
        return [(payload, reply) for s, payload, reply in self.published if s == subject]


class RecordingSink:
    """Historian stand-in that keeps every record it is sent."""

    def __init__(self) -> None:
        self.records: list[MetricRecord] = []

    def send_data(self, record: MetricRecord) -> None:
        self.records.append(record)

    def keys(self) -> list[str | None]:
        return [record.key for record in self.records]

    def by_key(self, key: str) -> list[MetricRecord]:
        return [record for record in self.records if record.key == key]

    def one(self, key: str) -> MetricRecord:
        matches = self.by_key(key)
        assert len(matches) == 1, f"expected one {key!r}, got {len(matches)}"
        return matches[0]

    def values(self) -> dict[str | None, Any]:
        """Key -> value; only meaningful when each key appears once."""
        return {record.key: record.value for record in self.records}


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_bus() -> FakeMessageBus:
    return FakeMessageBus()


@pytest.fixture
def make_context() -> Callable[..., PollContext]:
    def _make(varz: JsonDict | None = None, index: int = 0, now: int = 1_700_000_000):
        return PollContext(index=index, now=now, varz=varz or {})

    return _make


@pytest.fixture
def log_messages() -> Generator[list[str], None, None]:
    """Capture loguru messages (message text only) emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)


@pytest_asyncio.fixture
async def component_server() -> AsyncGenerator[Callable[..., Any], None]:
    """Start local aiohttp apps on an ephemeral port; returns ``host:port``."""
    runners: list[web.AppRunner] = []

    async def _start(routes: list[web.RouteDef]) -> str:
        app = web.Application()
        app.add_routes(routes)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "127.0.0.1", 0)
        await site.start()
        runners.append(runner)
        port = runner.addresses[0][1]
        return f"127.0.0.1:{port}"

    yield _start

    for runner in runners:
        await runner.cleanup()
