"""Queue worker entry point: consume order messages until SIGINT/SIGTERM."""
from __future__ import annotations

import asyncio
import signal
from typing import Any

from loguru import logger

from consumer.app.composition import create_consumer_dependencies
from consumer.app.config.settings import Settings
from consumer.app.core import SERVICE_NAME
from consumer.app.core.logging import configure_logging
from consumer.app.messaging.consumer import create_message_handler


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


async def run_consumer(settings: Settings | None = None) -> None:
    settings = settings or Settings()
    deps = create_consumer_dependencies(settings)
    await deps.connect()

    shutdown = asyncio.Event()

    def request_shutdown() -> None:
        if not shutdown.is_set():
            _log("shutdown_signal")
            shutdown.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            pass

    try:
        handler = create_message_handler(deps.consumer_service, settings.consumer_name)
        consumer_tag = await deps.message_consumer.start_consuming(handler)
        _log("consumer_started", consumer_name=settings.consumer_name, queue=settings.queue_name)
        await shutdown.wait()
        try:
            await deps.message_consumer.cancel(consumer_tag)
        except Exception as exc:
            logger.warning("consumer cancel failed: {}", exc)
    finally:
        await deps.close()
        _log("consumer_stopped")


def main() -> None:
    settings = Settings()
    configure_logging(settings.log_level, serialize=settings.log_json)
    try:
        asyncio.run(run_consumer(settings))
    except KeyboardInterrupt:
        _log("consumer_interrupted")
    except Exception as e:
        logger.exception("consumer failed: {}", e)
        raise


if __name__ == "__main__":
    main()
