"""MongoDB implementation of DuplicateLog (append-only)."""
from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorCollection

from consumer.app.domain.models import DuplicateAttempt


class MongoDuplicateLog:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        await self._collection.create_index("attempt_id", unique=True, name="uq_duplicate_attempt_id")
        await self._collection.create_index(
            [("message_id", 1), ("consumer_name", 1)],
            name="idx_duplicate_message_consumer",
        )

    async def append(self, attempt: DuplicateAttempt) -> None:
        await self._collection.insert_one(attempt.to_dict())

    async def count(self) -> int:
        return await self._collection.count_documents({})
