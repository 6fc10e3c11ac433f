"""Port: append-only audit log of detected duplicates."""
from __future__ import annotations

from typing import Protocol

from consumer.app.domain.models import DuplicateAttempt


class DuplicateLog(Protocol):
    async def append(self, attempt: DuplicateAttempt) -> None: ...

    async def count(self) -> int: ...
