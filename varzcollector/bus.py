"""
Message bus used for component discovery and latency pings.

``MessageBus`` is the narrow surface the collector needs; ``NatsMessageBus``
implements it on top of nats-py. Message bodies are JSON objects.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

import nats
from loguru import logger
from nats.aio.client import Client as NatsClient
from nats.aio.msg import Msg

from .serialization import dumps, loads_object
from .type_aliases import JsonDict, Subject

type MessageCallback = Callable[[JsonDict], None]


class MessageBus(Protocol):
    async def connect(self) -> None: ...

    async def subscribe(self, subject: Subject, callback: MessageCallback) -> None: ...

    async def publish(
        self,
        subject: Subject,
        payload: JsonDict | None = None,
        reply: Subject | None = None,
    ) -> None: ...

    def new_inbox(self) -> Subject: ...

    async def close(self) -> None: ...


def decode_message(data: bytes) -> JsonDict:
    """Decode a bus message body; an empty body is an empty object."""
    if not data:
        return {}
    return loads_object(data, "bus message")


class NatsMessageBus:
    """MessageBus backed by a NATS connection."""

    def __init__(self, servers: Sequence[str], **options: Any) -> None:
        self.servers = list(servers)
        self.options = options
        self._nc: NatsClient | None = None

    @property
    def client(self) -> NatsClient:
        if self._nc is None:
            raise RuntimeError("NATS bus is not connected")
        return self._nc

    async def connect(self) -> None:
        self._nc = await nats.connect(
            servers=self.servers,
            error_cb=self._on_error,
            disconnected_cb=self._on_disconnected,
            reconnected_cb=self._on_reconnected,
            **self.options,
        )
        logger.info(f"collector.nats.connected servers={self.servers}")

    async def subscribe(self, subject: Subject, callback: MessageCallback) -> None:
        async def _deliver(msg: Msg) -> None:
            try:
                message = decode_message(msg.data)
            except ValueError as e:
                logger.warning(
                    f"collector.nats.bad-message subject={msg.subject} error={e!r}"
                )
                return
            callback(message)

        await self.client.subscribe(subject, cb=_deliver)
        logger.debug(f"collector.nats.subscribed subject={subject}")

    async def publish(
        self,
        subject: Subject,
        payload: JsonDict | None = None,
        reply: Subject | None = None,
    ) -> None:
        data = dumps(payload) if payload is not None else b""
        await self.client.publish(subject, data, reply=reply or "")

    def new_inbox(self) -> Subject:
        return self.client.new_inbox()

    async def close(self) -> None:
        if self._nc is not None and not self._nc.is_closed:
            await self._nc.drain()
        self._nc = None

    async def _on_error(self, e: Exception) -> None:
        logger.warning(f"collector.nats.error error={e!r}")

    async def _on_disconnected(self) -> None:
        logger.warning("collector.nats.disconnected")

    async def _on_reconnected(self) -> None:
        logger.info("collector.nats.reconnected")
