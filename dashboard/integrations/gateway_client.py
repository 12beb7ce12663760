from typing import Any, Dict, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from .base_client import BaseApiClient, path_segment
from .errors import ApiError
from dashboard.core.config import Settings, settings as default_settings
from dashboard.schemas.feature_flags import FlagSet, FlagState, FlagUpdate, ReloadResult
from dashboard.schemas.health import SimulationStatus
from dashboard.schemas.outbox import (
    EventDraft,
    EventPage,
    OutboxEvent,
    OutboxStats,
    PublishRequest,
    PublishResult,
)


M = TypeVar("M", bound=BaseModel)
_flag_set = TypeAdapter(FlagSet)


class GatewayApiClient(BaseApiClient):
    """
    Клиент, через который контроллеры дашборда ходят в шлюз (/api/...).

    Ответы 2xx разбираются в схемы, остальное превращается в ApiError
    с сообщением из тела ответа или с общим текстом операции.
    """

    def __init__(self, settings: Settings | None = None,
                 transport: httpx.AsyncBaseTransport | None = None,
                 base_url: str | None = None):
        cfg = settings or default_settings
        super().__init__(base_url=(base_url or cfg.GATEWAY_URL).rstrip("/"),
                         timeout=cfg.UPSTREAM_TIMEOUT_SECONDS, transport=transport)

    def _validate(self, model: Type[M], data: Any, failure: str) -> M:
        # 2xx с телом неожиданной формы для контроллера такая же ошибка, как 5xx
        try:
            return model.model_validate(data)
        except ValidationError as e:
            self._logger.error("Unexpected response shape for %s: %s", model.__name__, e)
            raise ApiError(None, failure, data) from e

    # --- outbox ---

    async def list_events(self, page: int, limit: int, status: str | None = None) -> EventPage:
        params: Dict[str, Any] = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        data = await self._request("GET", "/api/outbox/events", params=params,
                                   failure="Failed to fetch events")
        return self._validate(EventPage, data, "Failed to fetch events")

    async def get_event(self, event_id: str) -> OutboxEvent:
        data = await self._request("GET", f"/api/outbox/events/{path_segment(event_id)}",
                                   failure="Failed to fetch event")
        if isinstance(data, dict) and "event" in data:
            data = data["event"]
        return self._validate(OutboxEvent, data, "Failed to fetch event")

    async def create_event(self, draft: EventDraft) -> OutboxEvent | None:
        data = await self._request("POST", "/api/outbox/events",
                                   json=draft.model_dump(mode="json", exclude_none=True),
                                   failure="Failed to create event")
        event = data.get("event") if isinstance(data, dict) else None
        return self._validate(OutboxEvent, event, "Failed to create event") if event else None

    async def retry_event(self, event_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/api/outbox/events/{path_segment(event_id)}/retry",
                                   failure="Failed to retry event")

    async def delete_event(self, event_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/api/outbox/events/{path_segment(event_id)}",
                                   failure="Failed to delete event")

    async def publish(self, request: PublishRequest) -> PublishResult:
        data = await self._request("POST", "/api/outbox/admin/publish",
                                   json=request.model_dump(exclude_none=True),
                                   failure="Failed to publish events")
        return self._validate(PublishResult, data, "Failed to publish events")

    async def get_stats(self) -> OutboxStats:
        data = await self._request("GET", "/api/outbox/admin/stats", failure="Failed to fetch stats")
        return self._validate(OutboxStats, data, "Failed to fetch stats")

    async def get_simulation_status(self) -> SimulationStatus:
        data = await self._request("GET", "/api/outbox/admin/simulation-status",
                                   failure="Failed to fetch simulation status")
        status = data.get("simulation_status") if isinstance(data, dict) else None
        return self._validate(SimulationStatus, status or {}, "Failed to fetch simulation status")

    # --- feature flags ---

    async def get_flags(self, env: str) -> FlagSet:
        data = await self._request("GET", "/api/feature-flags/flags", params={"env": env},
                                   failure="Failed to fetch flags")
        try:
            return _flag_set.validate_python(data)
        except ValidationError as e:
            raise ApiError(None, "Failed to fetch flags", data) from e

    async def update_flag(self, key: str, enabled: bool, env: str) -> FlagState:
        data = await self._request("PUT", f"/api/feature-flags/admin/flags/{path_segment(key)}",
                                   params={"env": env},
                                   json=FlagUpdate(enabled=enabled).model_dump(),
                                   failure="Failed to update flag")
        if isinstance(data, dict):
            data.setdefault("key", key)
        return self._validate(FlagState, data, "Failed to update flag")

    async def reload_flags(self) -> ReloadResult:
        data = await self._request("POST", "/api/feature-flags/admin/reload",
                                   failure="Failed to reload flags")
        return ReloadResult(status=str(data.get("status", ""))) if isinstance(data, dict) else ReloadResult()

    # --- health ---

    async def probe(self, url: str, timeout: float | None = None) -> httpx.Response:
        """GET по абсолютному адресу health-эндпоинта, статус не проверяется."""
        if timeout is None:
            return await self._send("GET", url)
        return await self._send("GET", url, timeout=timeout)
