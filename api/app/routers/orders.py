from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request, Response
from loguru import logger

from api.app.core import SERVICE_NAME
from api.app.routers.serializers import json_response, record_to_response, response_from_result
from api.app.routers.utils import consumer_service_or_503
from api.app.schemas.orders import OrderFailureResponse, OrderPostRequest, ProcessingRecordResponse
from consumer.app.domain.errors import MessageQuarantinedError, MessageValidationError
from consumer.app.domain.models import OrderMessage


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


orders_router = APIRouter(prefix="/api/orders", tags=["Orders"])


@orders_router.post(
    "",
    summary="Process an order message",
    description="Processes the order at most once per message_id. Resubmitting a processed message_id replays the original order id instead of creating a second order.",
    responses={
        200: {"description": "Order processed, or duplicate replayed with the original order id."},
        400: {"description": "Missing message_id, or processing failed (transient or attempts exhausted)."},
        409: {"description": "Message is quarantined and requires manual intervention."},
        503: {"description": "Processing raised; the attempt was counted, try again later."},
    },
)
async def post_order(request: Request, body: OrderPostRequest) -> Response:
    service = consumer_service_or_503(request)
    if isinstance(service, Response):
        return service

    message = OrderMessage(
        message_id=body.message_id.strip(),
        customer_name=body.customer_name,
        amount=body.amount,
        timestamp=body.timestamp,
    )
    try:
        result = await service.process(message)
    except MessageValidationError as e:
        return json_response(400, OrderFailureResponse(error=str(e)))
    except MessageQuarantinedError as e:
        _log("order_rejected_quarantined", message_id=e.message_id)
        entry = e.entry
        return json_response(
            409,
            OrderFailureResponse(
                error=str(e),
                attempt_number=entry.attempt_number if entry else None,
                dead_letter_entry_id=entry.entry_id if entry else None,
            ),
        )
    except Exception as e:
        logger.exception("order processing raised for {}: {}", message.message_id, e)
        return json_response(503, OrderFailureResponse(error=f"Processing failed, try again later: {e}"))

    return response_from_result(result)


@orders_router.get(
    "",
    summary="List idempotency records",
    description="Returns processing records, most recently claimed first.",
    response_model=list[ProcessingRecordResponse],
    responses={503: {"description": "Store unavailable."}},
)
async def list_orders(request: Request, limit: int = Query(100, ge=1, le=1000)) -> Any:
    persistence = getattr(request.app.state, "persistence", None)
    if persistence is None:
        return Response(status_code=503, content="Database not available")
    try:
        records = await persistence.records.list_records(limit)
    except Exception as e:
        logger.warning("list records failed: {}", e)
        return Response(status_code=503)
    return [record_to_response(r) for r in records]
