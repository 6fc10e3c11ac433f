"""Caller-visible consumer errors."""
from __future__ import annotations

from consumer.app.domain.models import DeadLetterEntry


class ConsumerError(Exception):
    """Base error for the idempotent consumer."""


class MessageValidationError(ConsumerError, ValueError):
    """Raised before any side effect when a message cannot be admitted (e.g. no message id)."""


class MessageQuarantinedError(ConsumerError):
    """Raised when a message has a pending dead-letter entry and needs manual intervention."""

    def __init__(self, message_id: str, entry: DeadLetterEntry | None = None) -> None:
        self.message_id = message_id
        self.entry = entry
        if entry is not None:
            detail = (
                f"Message {message_id} requires manual intervention: quarantined after "
                f"{entry.attempt_number} attempts ({entry.failure_reason}); "
                f"dead-letter entry {entry.entry_id} is {entry.status}"
            )
        else:
            detail = f"Message {message_id} requires manual intervention: quarantined"
        super().__init__(detail)
