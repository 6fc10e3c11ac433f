"""
RabbitMQ consumer: connection lifecycle, queue declaration, and consume loop.

Lifecycle:
  DISCONNECTED -> CONNECTING (backoff) -> CONNECTED -> READY (qos set, queue declared)
  -> CONSUMING. On shutdown: CLOSING -> cancel consumer, close channel/connection -> CLOSED.

Broker disconnects after the first connect are handled by aio_pika's robust connection,
which restores the channel, the queue declaration and the consumer on reconnect.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import aio_pika
from aio_pika.abc import AbstractIncomingMessage, AbstractQueue, AbstractRobustChannel, AbstractRobustConnection
from loguru import logger

from consumer.app.config.settings import Settings
from consumer.app.core import SERVICE_NAME
from consumer.app.core.backoff import exponential_backoff
from consumer.app.infrastructure.messaging.rabbitmq.aio_pika_message_adapter import AioPikaMessageAdapter
from consumer.app.infrastructure.messaging.rabbitmq.constants import ConsumerState
from consumer.app.ports.incoming_message import IncomingMessage


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class RabbitMQConsumer:
    """MessageConsumer implementation"""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._state = ConsumerState.DISCONNECTED
        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractRobustChannel | None = None
        self._queue: AbstractQueue | None = None
        self._consumer_tag: str | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def ready(self) -> bool:
        return (
            self._connection is not None
            and not self._connection.is_closed
            and self._state in (ConsumerState.READY, ConsumerState.CONSUMING)
        )

    def _build_amqp_url(self) -> str:
        return (
            f"amqp://{self._settings.broker_user}:{self._settings.broker_password}"
            f"@{self._settings.broker_host}:{self._settings.broker_port}/"
        )

    async def connect(self) -> None:
        self._state = ConsumerState.CONNECTING
        _log("rmq_connecting", host=self._settings.broker_host, queue=self._settings.queue_name)
        attempt = 0
        async for delay in exponential_backoff(
            self._settings.initial_backoff_seconds,
            self._settings.max_backoff_seconds,
            self._settings.backoff_multiplier,
            self._settings.max_connection_attempts,
        ):
            attempt += 1
            _log("rmq_connect_attempt", attempt=attempt, delay=delay)
            try:
                self._connection = await aio_pika.connect_robust(self._build_amqp_url())
                break
            except Exception as e:
                logger.warning("rmq connect failed: {}", e)
                if attempt >= self._settings.max_connection_attempts:
                    _log("rmq_connect_failed", attempt=attempt)
                    self._state = ConsumerState.DISCONNECTED
                    raise
        self._state = ConsumerState.CONNECTED
        _log("rmq_connected")

        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self._settings.prefetch_count)
        self._queue = await self._channel.declare_queue(self._settings.queue_name, durable=True)
        self._state = ConsumerState.READY

    async def start_consuming(
        self,
        handler: Callable[[IncomingMessage], Awaitable[None]],
    ) -> str:
        async def on_message(raw_message: AbstractIncomingMessage) -> None:
            await handler(AioPikaMessageAdapter(raw_message))

        async with self._lock:
            if self._queue is None:
                raise RuntimeError("consumer not connected")
            self._consumer_tag = await self._queue.consume(on_message, no_ack=False)
            self._state = ConsumerState.CONSUMING
            _log("rmq_consuming", queue=self._settings.queue_name, consumer_tag=self._consumer_tag)
            return self._consumer_tag

    async def cancel(self, consumer_tag: str) -> None:
        async with self._lock:
            if self._queue is not None and self._consumer_tag == consumer_tag:
                await self._queue.cancel(consumer_tag)
                self._consumer_tag = None
                self._state = ConsumerState.READY

    async def close(self) -> None:
        self._state = ConsumerState.CLOSING
        _log("consumer_shutdown")
        async with self._lock:
            self._queue = None
            self._consumer_tag = None
            if self._channel is not None:
                try:
                    await self._channel.close()
                except Exception as e:
                    logger.warning("channel close failed (continuing to close connection): {}", e)
                self._channel = None
            if self._connection is not None:
                try:
                    await self._connection.close()
                except Exception as e:
                    logger.warning("connection close failed: {}", e)
                self._connection = None
        self._state = ConsumerState.CLOSED
