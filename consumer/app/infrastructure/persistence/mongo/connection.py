"""Mongo client connection helper (provider-specific infrastructure)."""
from __future__ import annotations

import inspect
from typing import Any

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

from consumer.app.config.settings import Settings
from consumer.app.core import SERVICE_NAME
from consumer.app.core.backoff import exponential_backoff


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def build_mongo_uri(settings: Settings) -> str:
    user, password = settings.database_user, settings.database_password
    if user and password:
        return f"mongodb://{user}:{password}@{settings.database_host}:{settings.database_port}"
    return f"mongodb://{settings.database_host}:{settings.database_port}"


async def close_mongo_client(client: Any) -> None:
    res = client.close()
    if inspect.isawaitable(res):
        await res


async def create_mongo_client(settings: Settings) -> AsyncIOMotorClient:
    """Connect to Mongo with retry/backoff and return a live, tz-aware client."""
    _log("mongo_connecting", host=settings.database_host, port=settings.database_port)
    attempt = 0
    async for delay in exponential_backoff(
        settings.initial_backoff_seconds,
        settings.max_backoff_seconds,
        settings.backoff_multiplier,
        settings.max_connection_attempts,
    ):
        attempt += 1
        _log("mongo_connect_attempt", attempt=attempt, delay=delay)
        mongo_client: AsyncIOMotorClient | None = None
        try:
            mongo_client = AsyncIOMotorClient(
                build_mongo_uri(settings),
                serverSelectionTimeoutMS=settings.database_connection_timeout_ms,
                tz_aware=True,
            )
            await mongo_client.admin.command("ping")
            _log("mongo_connected")
            return mongo_client
        except Exception as exc:
            logger.warning("mongo connect failed: {}", exc)
            if mongo_client is not None:
                await close_mongo_client(mongo_client)
            if attempt >= settings.max_connection_attempts:
                raise
    raise RuntimeError("mongo connect failed")
