"""In-memory message consumer for local mode and tests.

deliver() hands a body to the registered handler and returns the settled message so
callers can inspect how it was acked.
"""
from __future__ import annotations

from typing import Awaitable, Callable

from consumer.app.ports.incoming_message import IncomingMessage


class InMemoryIncomingMessage:
    def __init__(self, body: bytes, *, redelivered: bool = False) -> None:
        self._body = body
        self._redelivered = redelivered
        self.settlement: str | None = None
        self.requeue: bool | None = None

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def redelivered(self) -> bool:
        return self._redelivered

    def _settle(self, settlement: str, requeue: bool | None) -> None:
        if self.settlement is not None:
            raise RuntimeError(f"message already settled: {self.settlement}")
        self.settlement = settlement
        self.requeue = requeue

    async def ack(self) -> None:
        self._settle("ack", None)

    async def nack(self, *, requeue: bool = True) -> None:
        self._settle("nack", requeue)

    async def reject(self, *, requeue: bool = False) -> None:
        self._settle("reject", requeue)


class InMemoryMessageConsumer:
    def __init__(self) -> None:
        self._handler: Callable[[IncomingMessage], Awaitable[None]] | None = None
        self._connected = False

    @property
    def ready(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def start_consuming(
        self,
        handler: Callable[[IncomingMessage], Awaitable[None]],
    ) -> str:
        if not self._connected:
            raise RuntimeError("consumer not connected")
        self._handler = handler
        return "inmemory"

    async def cancel(self, consumer_tag: str) -> None:
        self._handler = None

    async def close(self) -> None:
        self._handler = None
        self._connected = False

    async def deliver(self, body: bytes, *, redelivered: bool = False) -> InMemoryIncomingMessage:
        if self._handler is None:
            raise RuntimeError("no handler registered")
        message = InMemoryIncomingMessage(body, redelivered=redelivered)
        await self._handler(message)
        return message
