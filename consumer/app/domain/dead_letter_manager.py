"""Dead-letter (quarantine) management: admission, listing, retry-release, statistics."""
from __future__ import annotations

import uuid
from typing import Any

from loguru import logger

from consumer.app.constants import DEAD_LETTER_STATUS, RETRY_RESOLUTION_NOTE
from consumer.app.core import SERVICE_NAME
from consumer.app.domain.attempt_tracker import AttemptTracker
from consumer.app.domain.models import AttemptKey, DeadLetterEntry, DeadLetterQueueStats, utcnow
from consumer.app.ports.dead_letter_store import DeadLetterStore
from consumer.app.ports.record_store import RecordStore


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class DeadLetterManager:
    """Owns the quarantine store.

    retry() resets the key completely: the entry becomes RESOLVED, the attempt counter is
    cleared and any CLAIMED record left for the message is released, so the next natural
    delivery is admitted NEW through the ordinary claim.
    """

    def __init__(
        self,
        store: DeadLetterStore,
        records: RecordStore,
        tracker: AttemptTracker,
    ) -> None:
        self._store = store
        self._records = records
        self._tracker = tracker

    async def admit(
        self,
        original_message_id: str,
        consumer_name: str,
        attempt_number: int,
        failure_reason: str,
        payload: dict[str, Any] | None = None,
    ) -> DeadLetterEntry:
        """Quarantine a message. Returns the already-pending entry if there is one."""
        entry = DeadLetterEntry(
            entry_id=str(uuid.uuid4()),
            original_message_id=original_message_id,
            consumer_name=consumer_name,
            attempt_number=int(attempt_number),
            failure_reason=failure_reason,
            payload=dict(payload or {}),
        )
        if await self._store.try_admit_pending(entry):
            logger.bind(
                service_name=SERVICE_NAME,
                event="dead_letter_admitted",
                message_id=original_message_id,
                consumer_name=consumer_name,
                entry_id=entry.entry_id,
                attempt_number=entry.attempt_number,
                error=failure_reason,
            ).warning("")
            return entry

        existing = await self._store.find_pending(original_message_id)
        _log(
            "dead_letter_already_pending",
            message_id=original_message_id,
            consumer_name=consumer_name,
            entry_id=existing.entry_id if existing else None,
        )
        # The pending entry can be resolved between the two calls; report ours then.
        return existing or entry

    async def find_pending(self, original_message_id: str) -> DeadLetterEntry | None:
        return await self._store.find_pending(original_message_id)

    async def find_blocking(self, original_message_id: str) -> DeadLetterEntry | None:
        """The entry that keeps the message out of processing: PENDING, else FAILED."""
        pending = await self._store.find_pending(original_message_id)
        if pending is not None:
            return pending
        return await self._store.find_failed(original_message_id)

    async def get(self, entry_id: str) -> DeadLetterEntry | None:
        return await self._store.get(entry_id)

    async def list(self) -> list[DeadLetterEntry]:
        return await self._store.list_pending()

    async def retry(self, entry_id: str) -> DeadLetterEntry | None:
        """PENDING -> RESOLVED and release the key. None (NotFound) if missing or not pending."""
        entry = await self._store.resolve(entry_id, RETRY_RESOLUTION_NOTE)
        if entry is None:
            _log("dead_letter_retry_not_found", entry_id=entry_id)
            return None

        self._tracker.clear(AttemptKey(entry.original_message_id, entry.consumer_name))
        released = await self._records.release(entry.original_message_id, entry.consumer_name)
        _log(
            "dead_letter_marked_for_retry",
            entry_id=entry_id,
            message_id=entry.original_message_id,
            consumer_name=entry.consumer_name,
            stale_claim_released=released,
        )
        return entry

    async def mark_failed(self, entry_id: str, notes: str) -> DeadLetterEntry | None:
        """PENDING -> FAILED. Admission keeps refusing the message; retry no longer applies."""
        entry = await self._store.mark_failed(entry_id, notes)
        if entry is None:
            _log("dead_letter_fail_not_found", entry_id=entry_id)
            return None
        _log("dead_letter_marked_failed", entry_id=entry_id, message_id=entry.original_message_id)
        return entry

    async def stats(self) -> DeadLetterQueueStats:
        entries = await self._store.scan_all()
        now = utcnow()
        pending = [e for e in entries if e.status == DEAD_LETTER_STATUS.PENDING]
        oldest = min((e.failure_timestamp for e in pending), default=None)
        return DeadLetterQueueStats(
            total_messages=len(entries),
            pending_messages=len(pending),
            resolved_messages=sum(1 for e in entries if e.status == DEAD_LETTER_STATUS.RESOLVED),
            failed_messages=sum(1 for e in entries if e.status == DEAD_LETTER_STATUS.FAILED),
            oldest_pending_age=(now - oldest) if oldest is not None else None,
        )
