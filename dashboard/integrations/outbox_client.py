from typing import Any, Dict

import httpx

from .base_client import BaseApiClient, path_segment
from dashboard.core.config import Settings, settings as default_settings


class OutboxApiClient(BaseApiClient):
    """Upstream-клиент сервиса outbox. Возвращает ответы как есть, статус разбирает шлюз."""

    def __init__(self, settings: Settings | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        cfg = settings or default_settings
        super().__init__(base_url=cfg.OUTBOX_API_URL.rstrip("/"),
                         timeout=cfg.UPSTREAM_TIMEOUT_SECONDS, transport=transport)

    async def list_events(self, params: Dict[str, Any]) -> httpx.Response:
        return await self._send("GET", "/api/v1/events", params=params)

    async def create_event(self, payload: Any) -> httpx.Response:
        return await self._send("POST", "/api/v1/events", json=payload)

    async def get_event(self, event_id: str) -> httpx.Response:
        return await self._send("GET", f"/api/v1/events/{path_segment(event_id)}")

    async def delete_event(self, event_id: str) -> httpx.Response:
        return await self._send("DELETE", f"/api/v1/events/{path_segment(event_id)}")

    async def retry_event(self, event_id: str) -> httpx.Response:
        return await self._send("POST", f"/api/v1/events/{path_segment(event_id)}/retry")

    async def publish(self, payload: Any) -> httpx.Response:
        return await self._send("POST", "/admin/publish", json=payload)

    async def get_stats(self) -> httpx.Response:
        return await self._send("GET", "/admin/stats")

    async def get_simulation_status(self) -> httpx.Response:
        return await self._send("GET", "/admin/simulation-status")

    async def health(self) -> httpx.Response:
        return await self._send("GET", "/health")
