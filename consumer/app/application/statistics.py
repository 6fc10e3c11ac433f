"""On-demand statistics snapshot over the record store, duplicate log and quarantine."""
from __future__ import annotations

from consumer.app.constants import RECORD_STATUS
from consumer.app.domain.dead_letter_manager import DeadLetterManager
from consumer.app.domain.models import ConsumerStatistics, utcnow
from consumer.app.ports.duplicate_log import DuplicateLog
from consumer.app.ports.record_store import RecordStore


class StatisticsService:
    def __init__(
        self,
        records: RecordStore,
        duplicates: DuplicateLog,
        dead_letters: DeadLetterManager,
    ) -> None:
        self._records = records
        self._duplicates = duplicates
        self._dead_letters = dead_letters

    async def collect(self) -> ConsumerStatistics:
        by_status = await self._records.count_by_status()
        oldest_claim = await self._records.oldest_claimed_at()
        dead_letter = await self._dead_letters.stats()
        return ConsumerStatistics(
            total_processed_messages=by_status.get(RECORD_STATUS.PROCESSED, 0),
            duplicate_messages_detected=await self._duplicates.count(),
            successful_completions=await self._records.count_with_result(),
            dead_letter_messages=dead_letter.total_messages,
            in_flight_claims=by_status.get(RECORD_STATUS.CLAIMED, 0),
            oldest_claim_age=(utcnow() - oldest_claim) if oldest_claim is not None else None,
            dead_letter=dead_letter,
        )
