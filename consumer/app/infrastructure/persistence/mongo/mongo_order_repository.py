"""MongoDB implementation of OrderRepository."""
from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorCollection

from consumer.app.domain.models import Order


class MongoOrderRepository:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index("order_id", unique=True, name="uq_order_id")

    async def add(self, order: Order) -> None:
        await self._collection.insert_one(order.to_dict())

    async def get(self, order_id: str) -> Order | None:
        doc = await self._collection.find_one({"order_id": order_id})
        return Order.from_dict(doc) if doc else None
