from __future__ import annotations

from typing import Any

from fastapi import Request, Response
from loguru import logger

from api.app.core import SERVICE_NAME
from consumer.app.application.consumer_service import ConsumerService

READINESS_PING_TIMEOUT_DEFAULT = 30.0


def readiness_ping_timeout_seconds(request: Request) -> float:
    """Read readiness DB ping timeout from app.state.settings or default."""
    settings = getattr(request.app.state, "settings", None)
    if settings is not None:
        return getattr(settings, "readiness_ping_timeout_seconds", READINESS_PING_TIMEOUT_DEFAULT)
    return READINESS_PING_TIMEOUT_DEFAULT


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).warning("")


def consumer_service_or_503(request: Request) -> ConsumerService | Response:
    service = getattr(request.app.state, "consumer_service", None)
    if service is None:
        _log("consumer_service_unavailable", path=request.url.path)
        return Response(status_code=503, content="Consumer service not available")
    return service


__all__ = [
    "readiness_ping_timeout_seconds",
    "consumer_service_or_503",
]
