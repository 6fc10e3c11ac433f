"""Consumer-level constants shared across modules."""
from __future__ import annotations

from enum import Enum


class RECORD_STATUS:
    CLAIMED = "CLAIMED"
    PROCESSED = "PROCESSED"


class DEAD_LETTER_STATUS:
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    FAILED = "FAILED"


class DUPLICATE_SOURCE:
    # Stored record already PROCESSED.
    CLAIM_CHECK = "claim-check"
    # Stored record still CLAIMED by another delivery.
    CONCURRENT_INSERT = "concurrent-insert"


class AdmissionKind(str, Enum):
    NEW = "NEW"
    DUPLICATE = "DUPLICATE"
    QUARANTINED = "QUARANTINED"


class ProcessOutcome(str, Enum):
    PROCESSED = "PROCESSED"
    DUPLICATE_REPLAY = "DUPLICATE_REPLAY"
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"


DEFAULT_CONSUMER_NAME = "order-processor"
RETRY_RESOLUTION_NOTE = "Ready for retry"
ORIGINAL_DELIVERY_FAILED = "Original delivery failed and is awaiting retry"
ORIGINAL_DELIVERY_RELEASED = "Original delivery was released before it completed"
ORDER_STATUS_COMPLETED = "COMPLETED"
