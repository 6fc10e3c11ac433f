"""Unit tests for queue decoding and ack/nack/reject settlement."""
from __future__ import annotations

import asyncio
import json
from decimal import Decimal
from typing import Any

import pytest

from consumer.app.domain.errors import MessageValidationError
from consumer.app.infrastructure.messaging.inmemory.in_memory_consumer import InMemoryMessageConsumer
from consumer.app.messaging.consumer import create_message_handler, decode_order_message
from tests.conftest import AlwaysFailing, CountingSuccess, Raising, Stack


def _body(payload: Any) -> bytes:
    return json.dumps(payload).encode()


def _deliver_all(stack: Stack, bodies: list[bytes]):
    async def _run():
        consumer = InMemoryMessageConsumer()
        await consumer.connect()
        await consumer.start_consuming(create_message_handler(stack.service))
        return [await consumer.deliver(b) for b in bodies]

    return asyncio.run(_run())


def test_decode_accepts_camel_case_fields():
    msg = decode_order_message(
        _body({"messageId": "m1", "customerName": "Alice", "amount": 10.5, "timestamp": "2024-01-02T03:04:05Z"})
    )
    assert msg.message_id == "m1"
    assert msg.customer_name == "Alice"
    assert msg.amount == Decimal("10.5")
    assert msg.timestamp is not None
    assert msg.timestamp.tzinfo is not None


def test_decode_rejects_non_json_and_non_objects():
    with pytest.raises(MessageValidationError):
        decode_order_message(b"not json")
    with pytest.raises(MessageValidationError):
        decode_order_message(_body(["m1"]))
    with pytest.raises(MessageValidationError):
        decode_order_message(_body({"message_id": "m1", "amount": "lots"}))


def test_processed_and_duplicate_deliveries_are_acked():
    fn = CountingSuccess()
    stack = Stack(fn)
    body = _body({"message_id": "m1", "customer_name": "Alice", "amount": "10"})

    first, second = _deliver_all(stack, [body, body])

    assert first.settlement == "ack"
    assert second.settlement == "ack"
    assert fn.calls == ["m1"]


def test_invalid_messages_are_rejected_without_requeue():
    stack = Stack(CountingSuccess())

    garbage, missing_id = _deliver_all(stack, [b"{oops", _body({"customer_name": "Alice"})])

    for msg in (garbage, missing_id):
        assert msg.settlement == "reject"
        assert msg.requeue is False


def test_transient_failure_is_nacked_with_requeue_and_exhaustion_is_acked():
    stack = Stack(AlwaysFailing(), max_attempts=2)
    body = _body({"message_id": "m2", "amount": "5"})

    first, second, third = _deliver_all(stack, [body, body, body])

    assert (first.settlement, first.requeue) == ("nack", True)
    assert second.settlement == "ack"
    # Quarantined: acked so the broker stops redelivering.
    assert third.settlement == "ack"


def test_raised_fault_is_nacked_with_requeue():
    stack = Stack(Raising(ConnectionError("downstream")), max_attempts=3)

    (msg,) = _deliver_all(stack, [_body({"message_id": "m3"})])

    assert msg.settlement == "nack"
    assert msg.requeue is True
