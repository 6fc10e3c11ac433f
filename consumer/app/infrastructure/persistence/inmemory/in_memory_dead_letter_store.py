"""In-memory DeadLetterStore for local mode and tests."""
from __future__ import annotations

from dataclasses import replace

from consumer.app.constants import DEAD_LETTER_STATUS
from consumer.app.domain.models import DeadLetterEntry, utcnow


class InMemoryDeadLetterStore:
    def __init__(self) -> None:
        self._entries: dict[str, DeadLetterEntry] = {}

    async def try_admit_pending(self, entry: DeadLetterEntry) -> bool:
        if self._pending_for(entry.original_message_id) is not None:
            return False
        self._entries[entry.entry_id] = entry
        return True

    async def find_pending(self, original_message_id: str) -> DeadLetterEntry | None:
        return self._pending_for(original_message_id)

    async def find_failed(self, original_message_id: str) -> DeadLetterEntry | None:
        failed = [
            e
            for e in self._entries.values()
            if e.original_message_id == original_message_id and e.status == DEAD_LETTER_STATUS.FAILED
        ]
        return max(failed, key=lambda e: e.resolved_timestamp or e.failure_timestamp, default=None)

    async def get(self, entry_id: str) -> DeadLetterEntry | None:
        return self._entries.get(entry_id)

    async def list_pending(self) -> list[DeadLetterEntry]:
        pending = [e for e in self._entries.values() if e.is_pending]
        return sorted(pending, key=lambda e: e.failure_timestamp)

    async def resolve(self, entry_id: str, notes: str) -> DeadLetterEntry | None:
        return self._transition(entry_id, DEAD_LETTER_STATUS.RESOLVED, notes)

    async def mark_failed(self, entry_id: str, notes: str) -> DeadLetterEntry | None:
        return self._transition(entry_id, DEAD_LETTER_STATUS.FAILED, notes)

    async def scan_all(self) -> list[DeadLetterEntry]:
        return list(self._entries.values())

    def _pending_for(self, original_message_id: str) -> DeadLetterEntry | None:
        for entry in self._entries.values():
            if entry.original_message_id == original_message_id and entry.is_pending:
                return entry
        return None

    def _transition(self, entry_id: str, status: str, notes: str) -> DeadLetterEntry | None:
        entry = self._entries.get(entry_id)
        if entry is None or not entry.is_pending:
            return None
        updated = replace(entry, status=status, resolved_timestamp=utcnow(), resolution_notes=notes)
        self._entries[entry_id] = updated
        return updated
