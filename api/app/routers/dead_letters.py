from __future__ import annotations

from fastapi import APIRouter, Request, Response

from api.app.routers.serializers import dead_letter_stats_to_response, entry_to_response, json_response
from api.app.routers.utils import consumer_service_or_503
from api.app.schemas.dead_letters import (
    DeadLetterActionResponse,
    DeadLetterFailRequest,
    DeadLetterQueueResponse,
)
from api.app.schemas.orders import OrderFailureResponse

dead_letter_router = APIRouter(prefix="/api/dead-letter-queue", tags=["Dead letters"])

_NOT_FOUND = OrderFailureResponse(error="Dead-letter message not found")


@dead_letter_router.get(
    "",
    summary="List quarantined messages",
    description="Pending dead-letter entries, oldest failure first, with aggregate queue statistics.",
    responses={
        200: {"description": "Pending entries and stats."},
        503: {"description": "Consumer service not available."},
    },
)
async def list_dead_letters(request: Request) -> Response:
    service = consumer_service_or_503(request)
    if isinstance(service, Response):
        return service
    entries = await service.list_quarantined()
    stats = (await service.get_statistics()).dead_letter
    return json_response(
        200,
        DeadLetterQueueResponse(
            messages=[entry_to_response(e) for e in entries],
            stats=dead_letter_stats_to_response(stats),
        ),
    )


@dead_letter_router.post(
    "/{entry_id}/retry",
    summary="Release a quarantined message for retry",
    description="Marks the entry resolved and resets the message, so its next delivery is processed as new.",
    responses={
        200: {"description": "Entry marked for retry."},
        404: {"description": "Entry not found or no longer pending."},
    },
)
async def retry_dead_letter(request: Request, entry_id: str) -> Response:
    service = consumer_service_or_503(request)
    if isinstance(service, Response):
        return service
    if not await service.retry_quarantined(entry_id):
        return json_response(404, _NOT_FOUND)
    return json_response(
        200,
        DeadLetterActionResponse(message="Dead-letter message marked for retry", entry_id=entry_id),
    )


@dead_letter_router.post(
    "/{entry_id}/fail",
    summary="Mark a quarantined message as permanently failed",
    description="The message stays blocked; further deliveries are not processed.",
    responses={
        200: {"description": "Entry marked failed."},
        404: {"description": "Entry not found or no longer pending."},
    },
)
async def fail_dead_letter(
    request: Request,
    entry_id: str,
    body: DeadLetterFailRequest | None = None,
) -> Response:
    service = consumer_service_or_503(request)
    if isinstance(service, Response):
        return service
    notes = (body or DeadLetterFailRequest()).notes
    if not await service.fail_quarantined(entry_id, notes):
        return json_response(404, _NOT_FOUND)
    return json_response(
        200,
        DeadLetterActionResponse(message="Dead-letter message marked as failed", entry_id=entry_id),
    )
