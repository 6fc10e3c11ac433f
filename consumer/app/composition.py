"""Consumer composition root: build and lifecycle-manage concrete dependencies.

Composition may: import concrete classes, call factories, store interface types,
manage high-level lifecycle.
"""
from __future__ import annotations

from typing import Any

from loguru import logger

from consumer.app.application.consumer_service import ConsumerService
from consumer.app.application.order_processor import OrderProcessor
from consumer.app.application.statistics import StatisticsService
from consumer.app.config.settings import Settings
from consumer.app.core import SERVICE_NAME
from consumer.app.domain.attempt_tracker import AttemptTracker
from consumer.app.domain.dead_letter_manager import DeadLetterManager
from consumer.app.domain.idempotency_guard import IdempotencyGuard
from consumer.app.infrastructure.messaging.factory import create_message_consumer
from consumer.app.infrastructure.persistence.factory import Persistence, create_persistence
from consumer.app.ports.message_consumer import MessageConsumer
from consumer.app.ports.record_store import RecordStore


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def build_consumer_service(persistence: Persistence, settings: Settings) -> ConsumerService:
    """Wire guard, tracker, dead-letter manager and statistics over one set of stores."""
    tracker = AttemptTracker(settings.max_processing_attempts)
    dead_letters = DeadLetterManager(persistence.dead_letters, persistence.records, tracker)
    guard = IdempotencyGuard(persistence.records, dead_letters, persistence.duplicates, tracker)
    statistics = StatisticsService(persistence.records, persistence.duplicates, dead_letters)
    return ConsumerService(
        guard,
        dead_letters,
        statistics,
        OrderProcessor(persistence.orders),
        consumer_name=settings.consumer_name,
        processing_timeout_seconds=settings.processing_timeout_seconds,
        in_flight_poll_initial_seconds=settings.in_flight_poll_initial_seconds,
        in_flight_poll_max_seconds=settings.in_flight_poll_max_seconds,
        in_flight_poll_attempts=settings.in_flight_poll_attempts,
    )


class ConsumerDependencies:
    """Holds wired consumer dependencies and their lifecycle.

    The HTTP surface builds this without a message consumer; the queue worker builds it
    with one.
    """

    def __init__(self, *, settings: Settings, with_message_consumer: bool = True) -> None:
        self._settings = settings
        self._with_message_consumer = with_message_consumer
        self._persistence: Persistence | None = None
        self._message_consumer: MessageConsumer | None = None
        self._consumer_service: ConsumerService | None = None
        self._connected = False

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def persistence(self) -> Persistence:
        if self._persistence is None:
            raise RuntimeError("persistence is not initialized")
        return self._persistence

    @property
    def records(self) -> RecordStore:
        return self.persistence.records

    @property
    def message_consumer(self) -> MessageConsumer:
        if self._message_consumer is None:
            raise RuntimeError("message_consumer is not initialized")
        return self._message_consumer

    @property
    def consumer_service(self) -> ConsumerService:
        if self._consumer_service is None:
            raise RuntimeError("consumer_service is not initialized")
        return self._consumer_service

    async def connect(self) -> None:
        self._persistence = await create_persistence(self._settings)

        if self._with_message_consumer:
            self._message_consumer = create_message_consumer(self._settings)
            try:
                await self._message_consumer.connect()
            except Exception:
                await self._persistence.close()
                self._persistence = None
                self._message_consumer = None
                raise

        self._consumer_service = build_consumer_service(self._persistence, self._settings)
        self._connected = True
        _log(
            "dependencies_connected",
            repository_backend=self._settings.repository_backend,
            with_message_consumer=self._with_message_consumer,
        )

    async def close(self) -> None:
        if self._message_consumer is not None:
            try:
                await self._message_consumer.close()
            except Exception as exc:
                logger.warning("message consumer close failed: {}", exc)
            self._message_consumer = None

        if self._persistence is not None:
            try:
                await self._persistence.close()
            except Exception as exc:
                logger.warning("persistence close failed: {}", exc)

        self._persistence = None
        self._consumer_service = None
        self._connected = False


def create_consumer_dependencies(
    settings: Settings | None = None,
    *,
    with_message_consumer: bool = True,
) -> ConsumerDependencies:
    return ConsumerDependencies(settings=settings or Settings(), with_message_consumer=with_message_consumer)
