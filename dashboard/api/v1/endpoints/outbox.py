import logging

from fastapi import APIRouter, Depends, Request

from dashboard.api.deps import (
    InvalidBody,
    error_response,
    get_outbox_client,
    health_response,
    passthrough,
    read_json_body,
    upstream_error,
)
from dashboard.integrations.outbox_client import OutboxApiClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/outbox")

EVENT_NOT_FOUND = "Event not found"


@router.get("/events", summary="Список событий с пагинацией и фильтром")
async def list_events(request: Request, client: OutboxApiClient = Depends(get_outbox_client)):
    try:
        # page / limit / status уходят в сервис как пришли
        response = await client.list_events(dict(request.query_params))
        if not response.is_success:
            return upstream_error(response, "Failed to fetch events")
        return passthrough(response)
    except Exception as e:
        logger.error("Error fetching events: %s", e, exc_info=True)
        return error_response(500, "Failed to fetch events")


@router.post("/events", summary="Создать событие")
async def create_event(request: Request, client: OutboxApiClient = Depends(get_outbox_client)):
    try:
        payload = await read_json_body(request)
        response = await client.create_event(payload)
        if response.is_success or response.status_code == 400:
            return passthrough(response)
        logger.warning("Outbox API error on create: %d", response.status_code)
        return error_response(500, "Failed to create event")
    except InvalidBody as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error("Error creating event: %s", e, exc_info=True)
        return error_response(500, "Failed to create event")


@router.get("/events/{event_id:path}", summary="Событие по ID")
async def get_event(event_id: str, client: OutboxApiClient = Depends(get_outbox_client)):
    try:
        response = await client.get_event(event_id)
        if response.status_code == 404:
            return error_response(404, EVENT_NOT_FOUND)
        if not response.is_success:
            logger.warning("Outbox API error on get %s: %d", event_id, response.status_code)
            return error_response(500, "Failed to fetch event")
        return passthrough(response)
    except Exception as e:
        logger.error("Error fetching event %s: %s", event_id, e, exc_info=True)
        return error_response(500, "Failed to fetch event")


@router.delete("/events/{event_id:path}", summary="Удалить событие")
async def delete_event(event_id: str, client: OutboxApiClient = Depends(get_outbox_client)):
    try:
        response = await client.delete_event(event_id)
        if response.status_code == 404:
            return error_response(404, EVENT_NOT_FOUND)
        if not response.is_success:
            logger.warning("Outbox API error on delete %s: %d", event_id, response.status_code)
            return error_response(500, "Failed to delete event")
        return passthrough(response)
    except Exception as e:
        logger.error("Error deleting event %s: %s", event_id, e, exc_info=True)
        return error_response(500, "Failed to delete event")


@router.post("/events/{event_id:path}/retry", summary="Повторить публикацию события")
async def retry_event(event_id: str, client: OutboxApiClient = Depends(get_outbox_client)):
    """
    404 -> {"error": "Event not found"};
    400 (например, событие не в статусе failed) -> тело сервиса как есть;
    остальное -> 500.
    """
    try:
        response = await client.retry_event(event_id)
        if response.status_code == 404:
            return error_response(404, EVENT_NOT_FOUND)
        if response.status_code == 400:
            return passthrough(response)
        if not response.is_success:
            logger.warning("Outbox API error on retry %s: %d", event_id, response.status_code)
            return error_response(500, "Failed to retry event")
        return passthrough(response)
    except Exception as e:
        logger.error("Error retrying event %s: %s", event_id, e, exc_info=True)
        return error_response(500, "Failed to retry event")


@router.post("/admin/publish", summary="Опубликовать ожидающие события")
async def publish_events(request: Request, client: OutboxApiClient = Depends(get_outbox_client)):
    try:
        payload = await read_json_body(request, default={})
        response = await client.publish(payload)
        if not response.is_success:
            logger.warning("Outbox API error on publish: %d", response.status_code)
            return error_response(500, "Failed to publish events")
        return passthrough(response)
    except InvalidBody as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error("Error publishing events: %s", e, exc_info=True)
        return error_response(500, "Failed to publish events")


@router.get("/admin/stats", summary="Агрегаты outbox")
async def get_stats(client: OutboxApiClient = Depends(get_outbox_client)):
    try:
        response = await client.get_stats()
        if not response.is_success:
            logger.warning("Outbox API error on stats: %d", response.status_code)
            return error_response(500, "Failed to fetch stats")
        return passthrough(response)
    except Exception as e:
        logger.error("Error fetching stats: %s", e, exc_info=True)
        return error_response(500, "Failed to fetch stats")


@router.get("/admin/simulation-status", summary="Состояние режима симуляции")
async def get_simulation_status(client: OutboxApiClient = Depends(get_outbox_client)):
    try:
        response = await client.get_simulation_status()
        if not response.is_success:
            logger.warning("Outbox API error on simulation status: %d", response.status_code)
            return error_response(500, "Failed to fetch simulation status")
        return passthrough(response)
    except Exception as e:
        logger.error("Error fetching simulation status: %s", e, exc_info=True)
        return error_response(500, "Failed to fetch simulation status")


@router.get("/health", summary="Состояние сервиса outbox")
async def outbox_health(client: OutboxApiClient = Depends(get_outbox_client)):
    return await health_response(client.health, "outbox")
