"""Port: queue subscription. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from consumer.app.ports.incoming_message import IncomingMessage


class MessageConsumer(Protocol):
    async def connect(self) -> None: ...

    async def start_consuming(
        self,
        handler: Callable[[IncomingMessage], Awaitable[None]],
    ) -> str:
        """Start consuming; handler receives each delivery. Returns a consumer tag."""
        ...

    async def cancel(self, consumer_tag: str) -> None: ...

    async def close(self) -> None: ...
