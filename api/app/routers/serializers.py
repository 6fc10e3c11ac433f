"""Helpers to map consumer domain objects into API response models."""
from __future__ import annotations

from datetime import timedelta

from fastapi import Response
from pydantic import BaseModel

from api.app.schemas.dead_letters import DeadLetterEntryResponse, DeadLetterStatsResponse, StatisticsResponse
from api.app.schemas.orders import OrderFailureResponse, OrderPostResponse, ProcessingRecordResponse
from consumer.app.domain.models import (
    ConsumerStatistics,
    DeadLetterEntry,
    DeadLetterQueueStats,
    ProcessingRecord,
    ProcessResult,
)


def json_response(status_code: int, model: BaseModel) -> Response:
    return Response(status_code=status_code, media_type="application/json", content=model.model_dump_json())


def _seconds(age: timedelta | None) -> float | None:
    return age.total_seconds() if age is not None else None


def response_from_result(result: ProcessResult) -> Response:
    """
    Map a ProcessResult to an HTTP response.

    - success (processed or duplicate replay) -> 200 with the artifact id
    - transient failure / attempts exhausted -> 400 with success=false and the error
    """
    if result.success:
        return json_response(
            200,
            OrderPostResponse(
                message=result.message,
                order_id=result.artifact_id,
                outcome=result.outcome.value,
                in_flight=result.in_flight,
            ),
        )
    return json_response(
        400,
        OrderFailureResponse(
            error=result.error or "processing failed",
            outcome=result.outcome.value,
            attempt_number=result.attempt_number,
        ),
    )


def record_to_response(record: ProcessingRecord) -> ProcessingRecordResponse:
    return ProcessingRecordResponse(
        message_id=record.message_id,
        consumer_name=record.consumer_name,
        status=record.status,
        result=record.result,
        claimed_at=record.claimed_at,
        processed_at=record.processed_at,
        awaiting_retry=record.awaiting_retry,
    )


def entry_to_response(entry: DeadLetterEntry) -> DeadLetterEntryResponse:
    return DeadLetterEntryResponse(**entry.to_dict())


def dead_letter_stats_to_response(stats: DeadLetterQueueStats) -> DeadLetterStatsResponse:
    return DeadLetterStatsResponse(
        total_messages=stats.total_messages,
        pending_messages=stats.pending_messages,
        resolved_messages=stats.resolved_messages,
        failed_messages=stats.failed_messages,
        oldest_pending_age_seconds=_seconds(stats.oldest_pending_age),
    )


def statistics_to_response(stats: ConsumerStatistics) -> StatisticsResponse:
    return StatisticsResponse(
        total_processed_messages=stats.total_processed_messages,
        duplicate_messages_detected=stats.duplicate_messages_detected,
        successful_completions=stats.successful_completions,
        dead_letter_messages=stats.dead_letter_messages,
        in_flight_claims=stats.in_flight_claims,
        oldest_claim_age_seconds=_seconds(stats.oldest_claim_age),
        dead_letter=dead_letter_stats_to_response(stats.dead_letter),
    )
