"""Domain models."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from consumer.app.constants import (
    DEAD_LETTER_STATUS,
    ORDER_STATUS_COMPLETED,
    RECORD_STATUS,
    AdmissionKind,
    ProcessOutcome,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderMessage:
    """Inbound order message. message_id is the idempotency key."""

    message_id: str
    customer_name: str = ""
    amount: Decimal = Decimal("0")
    timestamp: datetime | None = None

    def payload_snapshot(self) -> dict[str, Any]:
        """Business payload captured when the message is quarantined."""
        return {
            "customer_name": self.customer_name,
            "amount": str(self.amount),
            "original_timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class AttemptKey:
    message_id: str
    consumer_name: str


@dataclass(frozen=True)
class ProcessingRecord:
    """Idempotency record for one (message_id, consumer_name).

    awaiting_retry marks a CLAIMED record whose last attempt failed with attempts left;
    the next delivery may take it over through the guard's reclaim path.
    """

    message_id: str
    consumer_name: str
    status: str = RECORD_STATUS.CLAIMED
    result: str | None = None
    claimed_at: datetime = field(default_factory=utcnow)
    processed_at: datetime | None = None
    awaiting_retry: bool = False

    @property
    def is_processed(self) -> bool:
        return self.status == RECORD_STATUS.PROCESSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "consumer_name": self.consumer_name,
            "status": self.status,
            "result": self.result,
            "claimed_at": self.claimed_at,
            "processed_at": self.processed_at,
            "awaiting_retry": self.awaiting_retry,
        }

    @staticmethod
    def from_dict(doc: dict[str, Any]) -> "ProcessingRecord":
        return ProcessingRecord(
            message_id=str(doc["message_id"]),
            consumer_name=str(doc["consumer_name"]),
            status=str(doc.get("status", RECORD_STATUS.CLAIMED)),
            result=doc.get("result"),
            claimed_at=_as_utc(doc.get("claimed_at")) or utcnow(),
            processed_at=_as_utc(doc.get("processed_at")),
            awaiting_retry=bool(doc.get("awaiting_retry", False)),
        )


@dataclass(frozen=True)
class DeadLetterEntry:
    """A quarantined message awaiting operator action."""

    entry_id: str
    original_message_id: str
    consumer_name: str
    attempt_number: int
    failure_reason: str
    payload: dict[str, Any] = field(default_factory=dict)
    failure_timestamp: datetime = field(default_factory=utcnow)
    status: str = DEAD_LETTER_STATUS.PENDING
    resolved_timestamp: datetime | None = None
    resolution_notes: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == DEAD_LETTER_STATUS.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "original_message_id": self.original_message_id,
            "consumer_name": self.consumer_name,
            "attempt_number": int(self.attempt_number),
            "failure_reason": self.failure_reason,
            "payload": dict(self.payload),
            "failure_timestamp": self.failure_timestamp,
            "status": self.status,
            "resolved_timestamp": self.resolved_timestamp,
            "resolution_notes": self.resolution_notes,
        }

    @staticmethod
    def from_dict(doc: dict[str, Any]) -> "DeadLetterEntry":
        return DeadLetterEntry(
            entry_id=str(doc["entry_id"]),
            original_message_id=str(doc["original_message_id"]),
            consumer_name=str(doc["consumer_name"]),
            attempt_number=int(doc.get("attempt_number", 0)),
            failure_reason=str(doc.get("failure_reason") or ""),
            payload=dict(doc.get("payload") or {}),
            failure_timestamp=_as_utc(doc.get("failure_timestamp")) or utcnow(),
            status=str(doc.get("status", DEAD_LETTER_STATUS.PENDING)),
            resolved_timestamp=_as_utc(doc.get("resolved_timestamp")),
            resolution_notes=doc.get("resolution_notes"),
        )


@dataclass(frozen=True)
class DuplicateAttempt:
    """Append-only audit entry for a detected duplicate delivery."""

    attempt_id: str
    message_id: str
    consumer_name: str
    source: str
    detected_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "message_id": self.message_id,
            "consumer_name": self.consumer_name,
            "source": self.source,
            "detected_at": self.detected_at,
        }


@dataclass(frozen=True)
class Order:
    """Artifact created by the default business function."""

    order_id: str
    customer_name: str
    amount: Decimal
    created_at: datetime = field(default_factory=utcnow)
    status: str = ORDER_STATUS_COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_name": self.customer_name,
            "amount": str(self.amount),
            "created_at": self.created_at,
            "status": self.status,
        }

    @staticmethod
    def from_dict(doc: dict[str, Any]) -> "Order":
        return Order(
            order_id=str(doc["order_id"]),
            customer_name=str(doc.get("customer_name") or ""),
            amount=Decimal(str(doc.get("amount") or "0")),
            created_at=_as_utc(doc.get("created_at")) or utcnow(),
            status=str(doc.get("status", ORDER_STATUS_COMPLETED)),
        )


@dataclass(frozen=True)
class BusinessResult:
    """What a business function reports back: an artifact id on success, a reason on failure."""

    success: bool
    artifact_id: str | None = None
    error: str | None = None

    @staticmethod
    def ok(artifact_id: str) -> "BusinessResult":
        return BusinessResult(success=True, artifact_id=artifact_id)

    @staticmethod
    def fail(error: str) -> "BusinessResult":
        return BusinessResult(success=False, error=error)


@dataclass(frozen=True)
class ClaimResult:
    """Outcome of the store's insert-or-conflict primitive."""

    inserted: bool
    existing: ProcessingRecord | None = None


@dataclass(frozen=True)
class Admission:
    kind: AdmissionKind
    record: ProcessingRecord | None = None
    dead_letter: DeadLetterEntry | None = None


@dataclass(frozen=True)
class Completion:
    """Guard bookkeeping after a business call."""

    success: bool
    attempt_number: int = 0
    dead_letter: DeadLetterEntry | None = None

    @property
    def quarantined(self) -> bool:
        return self.dead_letter is not None


@dataclass(frozen=True)
class ProcessResult:
    """Uniform response shape returned to the transport layer."""

    outcome: ProcessOutcome
    success: bool
    message: str = ""
    artifact_id: str | None = None
    error: str | None = None
    attempt_number: int = 0
    in_flight: bool = False

    @staticmethod
    def processed(artifact_id: str | None) -> "ProcessResult":
        return ProcessResult(
            outcome=ProcessOutcome.PROCESSED,
            success=True,
            message="Order processed successfully",
            artifact_id=artifact_id,
        )

    @staticmethod
    def duplicate(record: ProcessingRecord) -> "ProcessResult":
        if record.is_processed:
            return ProcessResult(
                outcome=ProcessOutcome.DUPLICATE_REPLAY,
                success=True,
                message=f"Message already processed: {record.result}",
                artifact_id=record.result,
            )
        return ProcessResult.still_in_flight()

    @staticmethod
    def still_in_flight() -> "ProcessResult":
        """Duplicate whose original delivery still holds the claim."""
        return ProcessResult(
            outcome=ProcessOutcome.DUPLICATE_REPLAY,
            success=True,
            message="Message is already being processed",
            in_flight=True,
        )

    @staticmethod
    def transient_failure(error: str, attempt_number: int) -> "ProcessResult":
        return ProcessResult(
            outcome=ProcessOutcome.TRANSIENT_FAILURE,
            success=False,
            error=error,
            attempt_number=attempt_number,
        )

    @staticmethod
    def exhausted(error: str, attempt_number: int) -> "ProcessResult":
        return ProcessResult(
            outcome=ProcessOutcome.ATTEMPTS_EXHAUSTED,
            success=False,
            error=f"Message processing failed after {attempt_number} attempts: {error}",
            attempt_number=attempt_number,
        )


@dataclass(frozen=True)
class DeadLetterQueueStats:
    total_messages: int = 0
    pending_messages: int = 0
    resolved_messages: int = 0
    failed_messages: int = 0
    oldest_pending_age: timedelta | None = None


@dataclass(frozen=True)
class ConsumerStatistics:
    total_processed_messages: int
    duplicate_messages_detected: int
    successful_completions: int
    dead_letter_messages: int
    in_flight_claims: int
    oldest_claim_age: timedelta | None
    dead_letter: DeadLetterQueueStats


def _as_utc(value: Any) -> datetime | None:
    # Mongo hands back naive datetimes unless the client is tz-aware.
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
