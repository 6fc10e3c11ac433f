"""Queue glue: decode order messages and settle each delivery from its ProcessResult."""
from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable

from loguru import logger

from consumer.app.application.consumer_service import ConsumerService
from consumer.app.constants import ProcessOutcome
from consumer.app.core import SERVICE_NAME
from consumer.app.domain.errors import MessageQuarantinedError, MessageValidationError
from consumer.app.domain.models import OrderMessage
from consumer.app.ports.incoming_message import IncomingMessage


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def _first(body: dict[str, Any], *names: str) -> Any:
    for name in names:
        if body.get(name) is not None:
            return body[name]
    return None


def _parse_timestamp(raw: Any) -> datetime | None:
    if raw in (None, ""):
        return None
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError as exc:
        raise MessageValidationError(f"invalid timestamp: {raw!r}") from exc


def decode_order_message(raw_body: bytes) -> OrderMessage:
    """Parse a JSON order message. Accepts snake_case and camelCase field names."""
    try:
        body = json.loads(raw_body.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MessageValidationError(f"message body is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise MessageValidationError("message body must be a JSON object")

    raw_amount = _first(body, "amount", "Amount")
    try:
        amount = Decimal(str(raw_amount)) if raw_amount is not None else Decimal("0")
    except InvalidOperation as exc:
        raise MessageValidationError(f"invalid amount: {raw_amount!r}") from exc

    return OrderMessage(
        message_id=str(_first(body, "message_id", "messageId", "MessageId") or "").strip(),
        customer_name=str(_first(body, "customer_name", "customerName", "CustomerName") or ""),
        amount=amount,
        timestamp=_parse_timestamp(_first(body, "timestamp", "Timestamp")),
    )


def create_message_handler(
    consumer_service: ConsumerService,
    consumer_name: str | None = None,
) -> Callable[[IncomingMessage], Awaitable[None]]:
    """
    Create an async handler that processes one delivery and settles it exactly once.

    ack: processed, duplicate, attempts exhausted, quarantined.
    nack(requeue=True): transient failure or a raised business fault.
    reject(requeue=False): undecodable or invalid message.
    """

    async def on_message(message: IncomingMessage) -> None:
        try:
            order_message = decode_order_message(message.body)
            result = await consumer_service.process(order_message, consumer_name)
        except MessageValidationError as exc:
            logger.warning("rejecting invalid message: {}", exc)
            await message.reject(requeue=False)
            return
        except MessageQuarantinedError as exc:
            _log("message_quarantined_skipped", message_id=exc.message_id)
            await message.ack()
            return
        except Exception as exc:
            logger.exception("message handling failed: {}", exc)
            await message.nack(requeue=True)
            return

        if result.outcome == ProcessOutcome.TRANSIENT_FAILURE:
            await message.nack(requeue=True)
        else:
            await message.ack()
        _log(
            "message_settled",
            message_id=order_message.message_id,
            outcome=result.outcome.value,
            redelivered=message.redelivered,
            attempt_number=result.attempt_number,
        )

    return on_message
