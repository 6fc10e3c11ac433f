"""Port: durable idempotency records keyed by (message_id, consumer_name)."""
from __future__ import annotations

from datetime import datetime
from typing import Protocol

from consumer.app.domain.models import ClaimResult, ProcessingRecord


class RecordStore(Protocol):
    """Implementations must make try_claim and try_reclaim atomic in the store itself."""

    async def try_claim(self, message_id: str, consumer_name: str) -> ClaimResult:
        """Insert a CLAIMED record; on uniqueness conflict return the existing record instead of overwriting."""
        ...

    async def mark_processed(self, message_id: str, consumer_name: str, result: str) -> bool:
        """CLAIMED -> PROCESSED. Returns False if the record is missing or already PROCESSED."""
        ...

    async def mark_retryable(self, message_id: str, consumer_name: str) -> bool: ...

    async def try_reclaim(self, message_id: str, consumer_name: str) -> bool:
        """Conditionally take over a CLAIMED record awaiting retry. Exactly one caller wins."""
        ...

    async def release(self, message_id: str, consumer_name: str) -> bool:
        """Delete a CLAIMED record. PROCESSED records are never removed."""
        ...

    async def get(self, message_id: str, consumer_name: str) -> ProcessingRecord | None: ...

    async def list_records(self, limit: int = 100) -> list[ProcessingRecord]: ...

    async def count_by_status(self) -> dict[str, int]: ...

    async def count_with_result(self) -> int:
        """PROCESSED records that carry a non-empty artifact id."""
        ...

    async def oldest_claimed_at(self) -> datetime | None: ...
