"""MongoDB implementation of DeadLetterStore."""
from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from consumer.app.constants import DEAD_LETTER_STATUS
from consumer.app.domain.models import DeadLetterEntry, utcnow


class MongoDeadLetterStore:
    """
    Concrete DeadLetterStore.

    At most one PENDING entry per original_message_id, enforced by a partial unique index;
    RESOLVED and FAILED entries accumulate as history.
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        """Infrastructure bootstrap: create indexes. Not part of the port."""
        await self._collection.create_index("entry_id", unique=True, name="uq_dead_letter_entry_id")
        await self._collection.create_index(
            "original_message_id",
            unique=True,
            partialFilterExpression={"status": DEAD_LETTER_STATUS.PENDING},
            name="uq_dead_letter_pending_message",
        )
        await self._collection.create_index(
            [("status", ASCENDING), ("failure_timestamp", ASCENDING)],
            name="idx_dead_letter_status_failure_ts",
        )

    async def try_admit_pending(self, entry: DeadLetterEntry) -> bool:
        try:
            await self._collection.insert_one(entry.to_dict())
        except DuplicateKeyError:
            return False
        return True

    async def find_pending(self, original_message_id: str) -> DeadLetterEntry | None:
        doc = await self._collection.find_one(
            {"original_message_id": original_message_id, "status": DEAD_LETTER_STATUS.PENDING}
        )
        return DeadLetterEntry.from_dict(doc) if doc else None

    async def find_failed(self, original_message_id: str) -> DeadLetterEntry | None:
        doc = await self._collection.find_one(
            {"original_message_id": original_message_id, "status": DEAD_LETTER_STATUS.FAILED},
            sort=[("resolved_timestamp", -1)],
        )
        return DeadLetterEntry.from_dict(doc) if doc else None

    async def get(self, entry_id: str) -> DeadLetterEntry | None:
        doc = await self._collection.find_one({"entry_id": entry_id})
        return DeadLetterEntry.from_dict(doc) if doc else None

    async def list_pending(self) -> list[DeadLetterEntry]:
        cursor = self._collection.find({"status": DEAD_LETTER_STATUS.PENDING}).sort(
            "failure_timestamp", ASCENDING
        )
        return [DeadLetterEntry.from_dict(doc) async for doc in cursor]

    async def resolve(self, entry_id: str, notes: str) -> DeadLetterEntry | None:
        return await self._transition(entry_id, DEAD_LETTER_STATUS.RESOLVED, notes)

    async def mark_failed(self, entry_id: str, notes: str) -> DeadLetterEntry | None:
        return await self._transition(entry_id, DEAD_LETTER_STATUS.FAILED, notes)

    async def scan_all(self) -> list[DeadLetterEntry]:
        return [DeadLetterEntry.from_dict(doc) async for doc in self._collection.find({})]

    async def _transition(self, entry_id: str, status: str, notes: str) -> DeadLetterEntry | None:
        doc = await self._collection.find_one_and_update(
            {"entry_id": entry_id, "status": DEAD_LETTER_STATUS.PENDING},
            {
                "$set": {
                    "status": status,
                    "resolved_timestamp": utcnow(),
                    "resolution_notes": notes,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return DeadLetterEntry.from_dict(doc) if doc else None
