"""Composition root and backend factory tests."""
from __future__ import annotations

import asyncio
import json

import pytest

from consumer.app.composition import create_consumer_dependencies
from consumer.app.config.settings import Settings
from consumer.app.infrastructure.messaging.factory import create_message_consumer
from consumer.app.infrastructure.messaging.rabbitmq.rabbitmq_consumer import RabbitMQConsumer
from consumer.app.infrastructure.persistence.factory import create_persistence
from consumer.app.messaging.consumer import create_message_handler


def _settings(**overrides) -> Settings:
    values = {"repository_backend": "inmemory", "consumer_backend": "inmemory"}
    values.update(overrides)
    return Settings(**values)


def test_settings_defaults():
    settings = Settings()
    assert settings.consumer_name == "order-processor"
    assert settings.max_processing_attempts == 3
    assert settings.records_collection == "processing_records"


def test_unsupported_backends_raise_value_error():
    with pytest.raises(ValueError, match="Unsupported consumer backend"):
        create_message_consumer(_settings(consumer_backend="kafka"))
    with pytest.raises(ValueError, match="Unsupported repository backend"):
        asyncio.run(create_persistence(_settings(repository_backend="sqlite")))


def test_rabbitmq_backend_is_selected_without_connecting():
    consumer = create_message_consumer(_settings(consumer_backend="rabbitmq"))
    assert isinstance(consumer, RabbitMQConsumer)
    assert consumer.ready is False


def test_properties_raise_before_connect():
    deps = create_consumer_dependencies(_settings())
    with pytest.raises(RuntimeError):
        _ = deps.consumer_service
    with pytest.raises(RuntimeError):
        _ = deps.message_consumer


def test_worker_dependencies_process_delivered_messages_end_to_end():
    async def _run():
        deps = create_consumer_dependencies(_settings(max_processing_attempts=2))
        await deps.connect()
        try:
            handler = create_message_handler(deps.consumer_service)
            await deps.message_consumer.start_consuming(handler)
            body = json.dumps({"message_id": "e2e", "customer_name": "Alice", "amount": "7"}).encode()
            first = await deps.message_consumer.deliver(body)
            second = await deps.message_consumer.deliver(body)
            stats = await deps.consumer_service.get_statistics()
            return first, second, stats
        finally:
            await deps.close()

    first, second, stats = asyncio.run(_run())

    assert first.settlement == "ack"
    assert second.settlement == "ack"
    assert stats.total_processed_messages == 1
    assert stats.duplicate_messages_detected == 1


def test_api_dependencies_skip_message_consumer():
    async def _run():
        deps = create_consumer_dependencies(_settings(), with_message_consumer=False)
        await deps.connect()
        try:
            assert deps.connected is True
            with pytest.raises(RuntimeError):
                _ = deps.message_consumer
            return await deps.persistence.ping()
        finally:
            await deps.close()

    assert asyncio.run(_run()) is True
