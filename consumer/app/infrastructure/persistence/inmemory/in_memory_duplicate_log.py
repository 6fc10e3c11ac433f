"""In-memory DuplicateLog for local mode and tests."""
from __future__ import annotations

from consumer.app.domain.models import DuplicateAttempt


class InMemoryDuplicateLog:
    def __init__(self) -> None:
        self._attempts: list[DuplicateAttempt] = []

    @property
    def attempts(self) -> list[DuplicateAttempt]:
        return list(self._attempts)

    async def append(self, attempt: DuplicateAttempt) -> None:
        self._attempts.append(attempt)

    async def count(self) -> int:
        return len(self._attempts)
