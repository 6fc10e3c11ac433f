"""Default business function: persist an Order for the message and report its id."""
from __future__ import annotations

import uuid

from loguru import logger

from consumer.app.core import SERVICE_NAME
from consumer.app.domain.models import BusinessResult, Order, OrderMessage
from consumer.app.ports.order_repository import OrderRepository


class OrderProcessor:
    """Implements ports.business_function.BusinessFunction on top of an OrderRepository."""

    def __init__(self, orders: OrderRepository) -> None:
        self._orders = orders

    async def __call__(self, message: OrderMessage) -> BusinessResult:
        order = Order(
            order_id=str(uuid.uuid4()),
            customer_name=message.customer_name,
            amount=message.amount,
        )
        try:
            await self._orders.add(order)
        except Exception as exc:
            logger.exception("order persistence failed for {}: {}", message.message_id, exc)
            return BusinessResult.fail(f"Error processing order: {exc}")
        logger.bind(service_name=SERVICE_NAME, event="order_created", order_id=order.order_id, message_id=message.message_id).info("")
        return BusinessResult.ok(order.order_id)
