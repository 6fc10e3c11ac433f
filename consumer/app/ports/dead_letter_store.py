"""Port: quarantine storage. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Protocol

from consumer.app.domain.models import DeadLetterEntry


class DeadLetterStore(Protocol):
    async def try_admit_pending(self, entry: DeadLetterEntry) -> bool:
        """Insert a PENDING entry. False if one is already PENDING for entry.original_message_id."""
        ...

    async def find_pending(self, original_message_id: str) -> DeadLetterEntry | None: ...

    async def find_failed(self, original_message_id: str) -> DeadLetterEntry | None:
        """Most recent FAILED entry for the message, if any."""
        ...

    async def get(self, entry_id: str) -> DeadLetterEntry | None: ...

    async def list_pending(self) -> list[DeadLetterEntry]:
        """PENDING entries, oldest failure first."""
        ...

    async def resolve(self, entry_id: str, notes: str) -> DeadLetterEntry | None:
        """PENDING -> RESOLVED. None when missing or no longer PENDING."""
        ...

    async def mark_failed(self, entry_id: str, notes: str) -> DeadLetterEntry | None: ...

    async def scan_all(self) -> list[DeadLetterEntry]: ...
