"""MongoDB implementation of RecordStore."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from consumer.app.constants import RECORD_STATUS
from consumer.app.domain.models import ClaimResult, ProcessingRecord, utcnow


def _key(message_id: str, consumer_name: str) -> dict[str, Any]:
    return {"message_id": message_id, "consumer_name": consumer_name}


class MongoRecordStore:
    """Concrete RecordStore. The unique compound index is what makes try_claim atomic."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> None:
        """Infrastructure bootstrap: create indexes. Not part of the port."""
        await self._collection.create_index(
            [("message_id", ASCENDING), ("consumer_name", ASCENDING)],
            unique=True,
            name="uq_record_message_consumer",
        )
        await self._collection.create_index(
            [("status", ASCENDING), ("claimed_at", ASCENDING)],
            name="idx_record_status_claimed_at",
        )

    async def try_claim(self, message_id: str, consumer_name: str) -> ClaimResult:
        record = ProcessingRecord(message_id=message_id, consumer_name=consumer_name)
        try:
            await self._collection.insert_one(record.to_dict())
        except DuplicateKeyError:
            return ClaimResult(inserted=False, existing=await self.get(message_id, consumer_name))
        return ClaimResult(inserted=True)

    async def mark_processed(self, message_id: str, consumer_name: str, result: str) -> bool:
        res = await self._collection.update_one(
            {**_key(message_id, consumer_name), "status": RECORD_STATUS.CLAIMED},
            {
                "$set": {
                    "status": RECORD_STATUS.PROCESSED,
                    "result": result,
                    "processed_at": utcnow(),
                    "awaiting_retry": False,
                }
            },
        )
        return res.modified_count == 1

    async def mark_retryable(self, message_id: str, consumer_name: str) -> bool:
        res = await self._collection.update_one(
            {**_key(message_id, consumer_name), "status": RECORD_STATUS.CLAIMED},
            {"$set": {"awaiting_retry": True}},
        )
        return res.matched_count == 1

    async def try_reclaim(self, message_id: str, consumer_name: str) -> bool:
        doc = await self._collection.find_one_and_update(
            {
                **_key(message_id, consumer_name),
                "status": RECORD_STATUS.CLAIMED,
                "awaiting_retry": True,
            },
            {"$set": {"awaiting_retry": False, "claimed_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return doc is not None

    async def release(self, message_id: str, consumer_name: str) -> bool:
        res = await self._collection.delete_one(
            {**_key(message_id, consumer_name), "status": RECORD_STATUS.CLAIMED}
        )
        return res.deleted_count == 1

    async def get(self, message_id: str, consumer_name: str) -> ProcessingRecord | None:
        doc = await self._collection.find_one(_key(message_id, consumer_name))
        return ProcessingRecord.from_dict(doc) if doc else None

    async def list_records(self, limit: int = 100) -> list[ProcessingRecord]:
        cursor = self._collection.find({}).sort("claimed_at", -1).limit(int(limit))
        return [ProcessingRecord.from_dict(doc) async for doc in cursor]

    async def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        async for row in self._collection.aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
            counts[str(row["_id"])] = int(row["count"])
        return counts

    async def count_with_result(self) -> int:
        return await self._collection.count_documents(
            {"status": RECORD_STATUS.PROCESSED, "result": {"$nin": [None, ""]}}
        )

    async def oldest_claimed_at(self) -> datetime | None:
        doc = await self._collection.find_one(
            {"status": RECORD_STATUS.CLAIMED},
            sort=[("claimed_at", ASCENDING)],
        )
        if not doc:
            return None
        return ProcessingRecord.from_dict(doc).claimed_at
