"""Port: order persistence used by the default business function."""
from __future__ import annotations

from typing import Protocol

from consumer.app.domain.models import Order


class OrderRepository(Protocol):
    async def add(self, order: Order) -> None: ...

    async def get(self, order_id: str) -> Order | None: ...
