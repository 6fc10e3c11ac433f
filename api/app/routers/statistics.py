from fastapi import APIRouter, Request, Response

from api.app.routers.serializers import json_response, statistics_to_response
from api.app.routers.utils import consumer_service_or_503

statistics_router = APIRouter(prefix="/api/statistics", tags=["Statistics"])


@statistics_router.get(
    "",
    summary="Consumer statistics",
    description="Processed, duplicate and quarantine counts plus in-flight claim age, computed on demand.",
    responses={503: {"description": "Consumer service not available."}},
)
async def get_statistics(request: Request) -> Response:
    service = consumer_service_or_503(request)
    if isinstance(service, Response):
        return service
    return json_response(200, statistics_to_response(await service.get_statistics()))
