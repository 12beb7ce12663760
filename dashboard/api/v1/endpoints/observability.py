from fastapi import APIRouter, Depends

from dashboard.api.deps import get_observability_client, health_response
from dashboard.integrations.observability_client import ObservabilityApiClient

router = APIRouter(prefix="/observability")


@router.get("/health", summary="Состояние сервиса метрик")
async def observability_health(client: ObservabilityApiClient = Depends(get_observability_client)):
    return await health_response(client.health, "observability")
