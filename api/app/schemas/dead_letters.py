from datetime import datetime
from typing import Any

from pydantic import BaseModel


class DeadLetterEntryResponse(BaseModel):
    entry_id: str
    original_message_id: str
    consumer_name: str
    attempt_number: int
    failure_reason: str
    payload: dict[str, Any]
    failure_timestamp: datetime
    status: str
    resolved_timestamp: datetime | None = None
    resolution_notes: str | None = None


class DeadLetterStatsResponse(BaseModel):
    total_messages: int
    pending_messages: int
    resolved_messages: int
    failed_messages: int
    oldest_pending_age_seconds: float | None = None


class DeadLetterQueueResponse(BaseModel):
    messages: list[DeadLetterEntryResponse]
    stats: DeadLetterStatsResponse


class DeadLetterFailRequest(BaseModel):
    notes: str = "Marked as failed by operator"


class DeadLetterActionResponse(BaseModel):
    message: str
    entry_id: str


class StatisticsResponse(BaseModel):
    total_processed_messages: int
    duplicate_messages_detected: int
    successful_completions: int
    dead_letter_messages: int
    in_flight_claims: int
    oldest_claim_age_seconds: float | None = None
    dead_letter: DeadLetterStatsResponse
