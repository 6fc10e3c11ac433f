from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import pytest
from fastapi import FastAPI

from api.app.routers.dead_letters import dead_letter_router
from api.app.routers.health import health_router
from api.app.routers.orders import orders_router
from api.app.routers.statistics import statistics_router
from consumer.app.application.consumer_service import ConsumerService
from consumer.app.application.order_processor import OrderProcessor
from consumer.app.application.statistics import StatisticsService
from consumer.app.domain.attempt_tracker import AttemptTracker
from consumer.app.domain.dead_letter_manager import DeadLetterManager
from consumer.app.domain.idempotency_guard import IdempotencyGuard
from consumer.app.domain.models import BusinessResult, DeadLetterEntry, OrderMessage
from consumer.app.infrastructure.persistence.factory import Persistence, create_in_memory_persistence
from consumer.app.infrastructure.persistence.inmemory.in_memory_dead_letter_store import InMemoryDeadLetterStore
from consumer.app.ports.business_function import BusinessFunction

CONSUMER = "order-processor"


def order_message(message_id: str, customer_name: str = "Alice", amount: str = "25.00") -> OrderMessage:
    return OrderMessage(message_id=message_id, customer_name=customer_name, amount=Decimal(amount))


class CountingSuccess:
    """Business function that succeeds with a fresh artifact id per call, after an optional delay."""

    def __init__(self, *, delay: float = 0.0) -> None:
        self.calls: list[str] = []
        self._delay = delay

    async def __call__(self, message: OrderMessage) -> BusinessResult:
        self.calls.append(message.message_id)
        if self._delay:
            await asyncio.sleep(self._delay)
        return BusinessResult.ok(f"order-{len(self.calls)}")


class AlwaysFailing:
    def __init__(self, error: str = "payment gateway unavailable") -> None:
        self.calls: list[str] = []
        self._error = error

    async def __call__(self, message: OrderMessage) -> BusinessResult:
        self.calls.append(message.message_id)
        return BusinessResult.fail(self._error)


class FailingThenSucceeding:
    """Fails the first `failures` calls, succeeds afterwards."""

    def __init__(self, failures: int) -> None:
        self.calls: list[str] = []
        self._failures = failures

    async def __call__(self, message: OrderMessage) -> BusinessResult:
        self.calls.append(message.message_id)
        if len(self.calls) <= self._failures:
            return BusinessResult.fail(f"failure {len(self.calls)}")
        return BusinessResult.ok(f"order-{len(self.calls)}")


class Raising:
    def __init__(self, exc: Exception) -> None:
        self.calls: list[str] = []
        self._exc = exc

    async def __call__(self, message: OrderMessage) -> BusinessResult:
        self.calls.append(message.message_id)
        raise self._exc


class Sleeping:
    def __init__(self, seconds: float) -> None:
        self.calls: list[str] = []
        self._seconds = seconds

    async def __call__(self, message: OrderMessage) -> BusinessResult:
        self.calls.append(message.message_id)
        await asyncio.sleep(self._seconds)
        return BusinessResult.ok("too-late")


class FailingDuplicateLog:
    """DuplicateLog whose writes always fail."""

    async def append(self, attempt: Any) -> None:
        raise ConnectionError("audit store down")

    async def count(self) -> int:
        return 0


class Stack:
    """In-memory wiring of the full consumer core."""

    def __init__(
        self,
        business_fn: BusinessFunction | None = None,
        *,
        max_attempts: int = 3,
        timeout: float = 5.0,
        persistence: Persistence | None = None,
        duplicates: Any | None = None,
        poll_attempts: int = 40,
    ) -> None:
        self.persistence = persistence or create_in_memory_persistence()
        self.duplicates = duplicates or self.persistence.duplicates
        self.tracker = AttemptTracker(max_attempts)
        self.dead_letters = DeadLetterManager(self.persistence.dead_letters, self.persistence.records, self.tracker)
        self.guard = IdempotencyGuard(self.persistence.records, self.dead_letters, self.duplicates, self.tracker)
        self.statistics = StatisticsService(self.persistence.records, self.duplicates, self.dead_letters)
        self.service = ConsumerService(
            self.guard,
            self.dead_letters,
            self.statistics,
            business_fn or OrderProcessor(self.persistence.orders),
            consumer_name=CONSUMER,
            processing_timeout_seconds=timeout,
            in_flight_poll_initial_seconds=0.01,
            in_flight_poll_max_seconds=0.05,
            in_flight_poll_attempts=poll_attempts,
        )

    @property
    def records(self):
        return self.persistence.records


@pytest.fixture()
def stack() -> Stack:
    return Stack()


def build_test_app(stack: Stack) -> FastAPI:
    app = FastAPI()
    app.state.persistence = stack.persistence
    app.state.consumer_service = stack.service
    app.include_router(health_router)
    app.include_router(orders_router)
    app.include_router(dead_letter_router)
    app.include_router(statistics_router)
    return app


@pytest.fixture()
def test_app(stack: Stack) -> FastAPI:
    return build_test_app(stack)


class FailingWithHeldCall:
    """Fails every call; call number `hold_on` signals `entered` and waits for `proceed` first."""

    def __init__(self, hold_on: int) -> None:
        self.calls: list[str] = []
        self._hold_on = hold_on
        self.entered = asyncio.Event()
        self.proceed = asyncio.Event()

    async def __call__(self, message: OrderMessage) -> BusinessResult:
        self.calls.append(message.message_id)
        attempt = len(self.calls)
        if attempt == self._hold_on:
            self.entered.set()
            await self.proceed.wait()
        return BusinessResult.fail(f"failure {attempt}")


class HeldLookupDeadLetterStore(InMemoryDeadLetterStore):
    """Once armed, the next find_pending reads the store, then waits for `gate` before answering."""

    def __init__(self) -> None:
        super().__init__()
        self._hold = False
        self.held = asyncio.Event()
        self.gate = asyncio.Event()

    def hold_next_lookup(self) -> None:
        self._hold = True

    async def find_pending(self, original_message_id: str) -> DeadLetterEntry | None:
        found = await super().find_pending(original_message_id)
        if self._hold:
            self._hold = False
            self.held.set()
            await self.gate.wait()
        return found


def held_lookup_persistence() -> Persistence:
    base = create_in_memory_persistence()
    return Persistence(
        records=base.records,
        dead_letters=HeldLookupDeadLetterStore(),
        duplicates=base.duplicates,
        orders=base.orders,
    )
