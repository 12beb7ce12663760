import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from dashboard.api.deps import error_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhook")


@router.post("", summary="Приемник публикаций outbox")
async def receive_event(request: Request):
    """
    Точка, куда сервис outbox публикует события (его webhook URL).
    Событие только логируется.
    """
    try:
        event = await request.json()
        logger.info("Received webhook event", extra={"extra": {
            "event_id": event.get("id"),
            "event_type": event.get("type"),
            "source": event.get("source"),
        }})
        return {"message": "Event received successfully", "eventId": event.get("id")}
    except Exception as e:
        logger.error("Error processing webhook: %s", e)
        return error_response(500, "Failed to process webhook")


@router.get("", summary="Проверка приемника")
async def webhook_status():
    return {
        "message": "Webhook endpoint is active",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
