from __future__ import annotations

import uuid
from typing import Any

from loguru import logger

from consumer.app.constants import DUPLICATE_SOURCE, AdmissionKind
from consumer.app.core import SERVICE_NAME
from consumer.app.domain.attempt_tracker import AttemptTracker
from consumer.app.domain.dead_letter_manager import DeadLetterManager
from consumer.app.domain.models import (
    Admission,
    AttemptKey,
    BusinessResult,
    Completion,
    DuplicateAttempt,
    OrderMessage,
    ProcessingRecord,
)
from consumer.app.ports.duplicate_log import DuplicateLog
from consumer.app.ports.record_store import RecordStore


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class IdempotencyGuard:
    """
    Admission control per (message_id, consumer_name).

    The record store's atomic insert is the only serialization point for a key: exactly
    one delivery observes NEW, everyone else observes DUPLICATE or QUARANTINED. A fresh
    claim re-reads the dead-letter store and backs out if the message was quarantined
    while the first lookup was in flight. A failed
    attempt with attempts left keeps the CLAIMED record and flags it awaiting_retry; the
    next delivery takes it over with the store's conditional reclaim. On exhaustion the
    message is handed to the dead-letter manager and the claim is released.
    """

    def __init__(
        self,
        records: RecordStore,
        dead_letters: DeadLetterManager,
        duplicates: DuplicateLog,
        tracker: AttemptTracker,
    ) -> None:
        self._records = records
        self._dead_letters = dead_letters
        self._duplicates = duplicates
        self._tracker = tracker

    @property
    def tracker(self) -> AttemptTracker:
        return self._tracker

    async def admit(self, message_id: str, consumer_name: str) -> Admission:
        blocking = await self._dead_letters.find_blocking(message_id)
        if blocking is not None:
            _log(
                "admission_quarantined",
                message_id=message_id,
                consumer_name=consumer_name,
                entry_id=blocking.entry_id,
                status=blocking.status,
            )
            return Admission(kind=AdmissionKind.QUARANTINED, dead_letter=blocking)

        claim = await self._records.try_claim(message_id, consumer_name)
        if claim.inserted:
            # Exhaustion quarantines before it releases, so a claim that lands after the
            # release still sees the entry here.
            blocking = await self._dead_letters.find_blocking(message_id)
            if blocking is not None:
                await self._records.release(message_id, consumer_name)
                _log(
                    "admission_quarantined_after_claim",
                    message_id=message_id,
                    consumer_name=consumer_name,
                    entry_id=blocking.entry_id,
                    status=blocking.status,
                )
                return Admission(kind=AdmissionKind.QUARANTINED, dead_letter=blocking)
            _log("admission_new", message_id=message_id, consumer_name=consumer_name)
            return Admission(kind=AdmissionKind.NEW)

        existing = claim.existing or await self._records.get(message_id, consumer_name)
        if existing is None:
            # Claim was released between the conflict and the reload; take it again.
            return await self.admit(message_id, consumer_name)

        if not existing.is_processed and existing.awaiting_retry:
            if await self._records.try_reclaim(message_id, consumer_name):
                _log(
                    "admission_reclaimed",
                    message_id=message_id,
                    consumer_name=consumer_name,
                    attempt_number=self._tracker.current(AttemptKey(message_id, consumer_name)),
                )
                return Admission(kind=AdmissionKind.NEW, record=existing)
            existing = await self._records.get(message_id, consumer_name) or existing

        source = DUPLICATE_SOURCE.CLAIM_CHECK if existing.is_processed else DUPLICATE_SOURCE.CONCURRENT_INSERT
        await self._audit_duplicate(message_id, consumer_name, source)
        _log(
            "admission_duplicate",
            message_id=message_id,
            consumer_name=consumer_name,
            source=source,
            status=existing.status,
        )
        return Admission(kind=AdmissionKind.DUPLICATE, record=existing)

    async def complete(
        self,
        message: OrderMessage,
        consumer_name: str,
        outcome: BusinessResult,
    ) -> Completion:
        message_id = message.message_id
        key = AttemptKey(message_id, consumer_name)

        if outcome.success:
            stored = await self._records.mark_processed(message_id, consumer_name, outcome.artifact_id or "")
            self._tracker.clear(key)
            _log(
                "message_completed",
                message_id=message_id,
                consumer_name=consumer_name,
                artifact_id=outcome.artifact_id,
                stored=stored,
            )
            return Completion(success=True)

        error_text = outcome.error or "unknown error"
        attempt = self._tracker.increment(key)
        if not self._tracker.exceeds_limit(attempt):
            await self._records.mark_retryable(message_id, consumer_name)
            logger.bind(
                service_name=SERVICE_NAME,
                event="message_retryable_failure",
                message_id=message_id,
                consumer_name=consumer_name,
                attempt_number=attempt,
                error=error_text,
            ).warning("")
            return Completion(success=False, attempt_number=attempt)

        entry = await self._dead_letters.admit(
            message_id,
            consumer_name,
            attempt,
            error_text,
            message.payload_snapshot(),
        )
        self._tracker.clear(key)
        await self._records.release(message_id, consumer_name)
        _log(
            "message_quarantined",
            message_id=message_id,
            consumer_name=consumer_name,
            attempt_number=attempt,
            entry_id=entry.entry_id,
        )
        return Completion(success=False, attempt_number=attempt, dead_letter=entry)

    async def lookup(self, message_id: str, consumer_name: str) -> ProcessingRecord | None:
        return await self._records.get(message_id, consumer_name)

    async def release(self, message_id: str, consumer_name: str) -> bool:
        released = await self._records.release(message_id, consumer_name)
        _log("claim_released", message_id=message_id, consumer_name=consumer_name, released=released)
        return released

    async def _audit_duplicate(self, message_id: str, consumer_name: str, source: str) -> None:
        attempt = DuplicateAttempt(
            attempt_id=str(uuid.uuid4()),
            message_id=message_id,
            consumer_name=consumer_name,
            source=source,
        )
        try:
            await self._duplicates.append(attempt)
        except Exception as exc:
            logger.warning("duplicate audit write failed for {}: {}", message_id, exc)
