"""Persistence factory: selects and assembles store adapters. Only place that imports concrete stores."""
from __future__ import annotations

from typing import Any

from loguru import logger

from consumer.app.config.settings import Settings
from consumer.app.core import SERVICE_NAME
from consumer.app.infrastructure.persistence.inmemory.in_memory_dead_letter_store import InMemoryDeadLetterStore
from consumer.app.infrastructure.persistence.inmemory.in_memory_duplicate_log import InMemoryDuplicateLog
from consumer.app.infrastructure.persistence.inmemory.in_memory_order_repository import InMemoryOrderRepository
from consumer.app.infrastructure.persistence.inmemory.in_memory_record_store import InMemoryRecordStore
from consumer.app.infrastructure.persistence.mongo.connection import close_mongo_client, create_mongo_client
from consumer.app.infrastructure.persistence.mongo.mongo_dead_letter_store import MongoDeadLetterStore
from consumer.app.infrastructure.persistence.mongo.mongo_duplicate_log import MongoDuplicateLog
from consumer.app.infrastructure.persistence.mongo.mongo_order_repository import MongoOrderRepository
from consumer.app.infrastructure.persistence.mongo.mongo_record_store import MongoRecordStore
from consumer.app.ports.dead_letter_store import DeadLetterStore
from consumer.app.ports.duplicate_log import DuplicateLog
from consumer.app.ports.order_repository import OrderRepository
from consumer.app.ports.record_store import RecordStore


class Persistence:
    """The four stores for one backend plus the client they share (if any)."""

    def __init__(
        self,
        *,
        records: RecordStore,
        dead_letters: DeadLetterStore,
        duplicates: DuplicateLog,
        orders: OrderRepository,
        client: Any | None = None,
    ) -> None:
        self.records = records
        self.dead_letters = dead_letters
        self.duplicates = duplicates
        self.orders = orders
        self._client = client

    async def ping(self) -> bool:
        if self._client is None:
            return True
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as exc:
            logger.bind(service_name=SERVICE_NAME, event="db_ping_failed", error=str(exc)).warning("")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await close_mongo_client(self._client)
            self._client = None


def create_in_memory_persistence() -> Persistence:
    return Persistence(
        records=InMemoryRecordStore(),
        dead_letters=InMemoryDeadLetterStore(),
        duplicates=InMemoryDuplicateLog(),
        orders=InMemoryOrderRepository(),
    )


async def create_persistence(settings: Settings) -> Persistence:
    """Select store adapters from configuration; connects and bootstraps indexes for mongo."""
    backend = settings.repository_backend.strip().lower()

    if backend == "inmemory":
        return create_in_memory_persistence()

    if backend == "mongo":
        mongo_client = await create_mongo_client(settings)
        db = mongo_client[settings.database_name]
        records = MongoRecordStore(db[settings.records_collection])
        dead_letters = MongoDeadLetterStore(db[settings.dead_letter_collection])
        duplicates = MongoDuplicateLog(db[settings.duplicate_collection])
        orders = MongoOrderRepository(db[settings.orders_collection])
        try:
            for store in (records, dead_letters, duplicates, orders):
                await store.ensure_indexes()
        except Exception:
            await close_mongo_client(mongo_client)
            raise
        return Persistence(
            records=records,
            dead_letters=dead_letters,
            duplicates=duplicates,
            orders=orders,
            client=mongo_client,
        )

    raise ValueError(f"Unsupported repository backend: {backend}")
