"""In-memory OrderRepository for local mode and tests."""
from __future__ import annotations

from consumer.app.domain.models import Order


class InMemoryOrderRepository:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}

    async def add(self, order: Order) -> None:
        if order.order_id in self._orders:
            raise ValueError(f"order already exists: {order.order_id}")
        self._orders[order.order_id] = order

    async def get(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    def __len__(self) -> int:
        return len(self._orders)
