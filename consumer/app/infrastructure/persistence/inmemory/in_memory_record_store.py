"""In-memory RecordStore for local mode and tests.

Each method does its check-and-write without awaiting in between, so it is atomic with
respect to other tasks on the same event loop.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from consumer.app.constants import RECORD_STATUS
from consumer.app.domain.models import AttemptKey, ClaimResult, ProcessingRecord, utcnow


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._records: dict[AttemptKey, ProcessingRecord] = {}

    async def try_claim(self, message_id: str, consumer_name: str) -> ClaimResult:
        key = AttemptKey(message_id, consumer_name)
        existing = self._records.get(key)
        if existing is not None:
            return ClaimResult(inserted=False, existing=existing)
        self._records[key] = ProcessingRecord(message_id=message_id, consumer_name=consumer_name)
        return ClaimResult(inserted=True)

    async def mark_processed(self, message_id: str, consumer_name: str, result: str) -> bool:
        key = AttemptKey(message_id, consumer_name)
        record = self._records.get(key)
        if record is None or record.status != RECORD_STATUS.CLAIMED:
            return False
        self._records[key] = replace(
            record,
            status=RECORD_STATUS.PROCESSED,
            result=result,
            processed_at=utcnow(),
            awaiting_retry=False,
        )
        return True

    async def mark_retryable(self, message_id: str, consumer_name: str) -> bool:
        key = AttemptKey(message_id, consumer_name)
        record = self._records.get(key)
        if record is None or record.status != RECORD_STATUS.CLAIMED:
            return False
        self._records[key] = replace(record, awaiting_retry=True)
        return True

    async def try_reclaim(self, message_id: str, consumer_name: str) -> bool:
        key = AttemptKey(message_id, consumer_name)
        record = self._records.get(key)
        if record is None or record.status != RECORD_STATUS.CLAIMED or not record.awaiting_retry:
            return False
        self._records[key] = replace(record, awaiting_retry=False, claimed_at=utcnow())
        return True

    async def release(self, message_id: str, consumer_name: str) -> bool:
        key = AttemptKey(message_id, consumer_name)
        record = self._records.get(key)
        if record is None or record.status != RECORD_STATUS.CLAIMED:
            return False
        del self._records[key]
        return True

    async def get(self, message_id: str, consumer_name: str) -> ProcessingRecord | None:
        return self._records.get(AttemptKey(message_id, consumer_name))

    async def list_records(self, limit: int = 100) -> list[ProcessingRecord]:
        ordered = sorted(self._records.values(), key=lambda r: r.claimed_at, reverse=True)
        return ordered[: int(limit)]

    async def count_by_status(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for record in self._records.values():
            counts[record.status] = counts.get(record.status, 0) + 1
        return counts

    async def count_with_result(self) -> int:
        return sum(1 for r in self._records.values() if r.is_processed and r.result)

    async def oldest_claimed_at(self) -> datetime | None:
        claimed = [r.claimed_at for r in self._records.values() if r.status == RECORD_STATUS.CLAIMED]
        return min(claimed, default=None)
