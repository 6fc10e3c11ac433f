"""Message consumer factory: selects implementation from config. Only place that imports concrete consumers."""
from __future__ import annotations

from consumer.app.config.settings import Settings
from consumer.app.infrastructure.messaging.inmemory.in_memory_consumer import InMemoryMessageConsumer
from consumer.app.infrastructure.messaging.rabbitmq.rabbitmq_consumer import RabbitMQConsumer
from consumer.app.ports.message_consumer import MessageConsumer


def create_message_consumer(settings: Settings) -> MessageConsumer:
    backend = settings.consumer_backend.strip().lower()

    if backend == "rabbitmq":
        return RabbitMQConsumer(settings)

    if backend == "inmemory":
        return InMemoryMessageConsumer()

    raise ValueError(f"Unsupported consumer backend: {backend}")
