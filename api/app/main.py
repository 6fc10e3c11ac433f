from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from api.app.core import SERVICE_NAME
from api.app.routers.dead_letters import dead_letter_router
from api.app.routers.health import health_router
from api.app.routers.orders import orders_router
from api.app.routers.statistics import statistics_router
from consumer.app.composition import create_consumer_dependencies
from consumer.app.config.settings import Settings
from consumer.app.core.logging import configure_logging


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the HTTP surface over a consumer service wired from settings (no queue consumer)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.bind(service_name=SERVICE_NAME, event="api_starting").info("")
        deps = create_consumer_dependencies(settings, with_message_consumer=False)
        try:
            await deps.connect()
        except Exception as e:
            logger.exception("dependency connect failed: {}", e)
            raise
        app.state.settings = deps.settings
        app.state.persistence = deps.persistence
        app.state.consumer_service = deps.consumer_service
        try:
            yield
        finally:
            logger.bind(service_name=SERVICE_NAME, event="api_stopping").info("")
            await deps.close()

    app = FastAPI(
        title="Idempotent Order Consumer API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(orders_router)
    app.include_router(dead_letter_router)
    app.include_router(statistics_router)
    return app


def _default_app() -> FastAPI:
    settings = Settings()
    configure_logging(settings.log_level, serialize=settings.log_json)
    return create_app(settings)


app = _default_app()
