"""Port: abstraction for an incoming queue message. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Protocol


class IncomingMessage(Protocol):
    """Transport-agnostic delivery. The message handler settles it exactly once."""

    @property
    def body(self) -> bytes: ...

    @property
    def redelivered(self) -> bool: ...

    async def ack(self) -> None: ...

    async def nack(self, *, requeue: bool = True) -> None: ...

    async def reject(self, *, requeue: bool = False) -> None: ...
