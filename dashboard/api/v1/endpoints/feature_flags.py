import logging

from fastapi import APIRouter, Depends, Query, Request

from dashboard.api.deps import (
    InvalidBody,
    error_response,
    get_feature_flags_client,
    health_response,
    passthrough,
    read_json_body,
    upstream_error,
)
from dashboard.integrations.feature_flags_client import FeatureFlagsApiClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/feature-flags")


@router.get("/flags", summary="Набор флагов окружения")
async def get_flags(
    env: str = Query(default="local", description="local или prod"),
    client: FeatureFlagsApiClient = Depends(get_feature_flags_client),
):
    try:
        response = await client.get_flags(env)
        if not response.is_success:
            return upstream_error(response, "Failed to fetch flags")
        return passthrough(response)
    except Exception as e:
        logger.error("Error fetching flags: %s", e, exc_info=True)
        return error_response(500, "Internal server error")


@router.put("/admin/flags/{key:path}", summary="Включить или выключить флаг")
async def update_flag(
    key: str,
    request: Request,
    env: str = Query(default="local"),
    client: FeatureFlagsApiClient = Depends(get_feature_flags_client),
):
    """
    Тело {"enabled": bool} уходит в сервис флагов без изменений.
    Ответ сервиса (любой статус) возвращается как есть.
    """
    try:
        payload = await read_json_body(request)
        response = await client.update_flag(key, env, payload)
        return passthrough(response)
    except InvalidBody as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error("Error updating feature flag %s: %s", key, e, exc_info=True)
        return error_response(500, "Failed to update feature flag")


@router.post("/admin/reload", summary="Перечитать флаги с диска")
async def reload_flags(client: FeatureFlagsApiClient = Depends(get_feature_flags_client)):
    try:
        response = await client.reload()
        if not response.is_success:
            return upstream_error(response, "Failed to reload flags")
        return passthrough(response)
    except Exception as e:
        logger.error("Error reloading flags: %s", e, exc_info=True)
        return error_response(500, "Internal server error")


@router.get("/health", summary="Состояние сервиса флагов")
async def feature_flags_health(
    client: FeatureFlagsApiClient = Depends(get_feature_flags_client),
):
    return await health_response(client.health, "feature-flags")
