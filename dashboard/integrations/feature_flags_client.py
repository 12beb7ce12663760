from typing import Any

import httpx

from .base_client import BaseApiClient, path_segment
from dashboard.core.config import Settings, settings as default_settings


class FeatureFlagsApiClient(BaseApiClient):
    def __init__(self, settings: Settings | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        cfg = settings or default_settings
        super().__init__(base_url=cfg.FEATURE_FLAGS_API_URL.rstrip("/"),
                         timeout=cfg.UPSTREAM_TIMEOUT_SECONDS, transport=transport)

    async def get_flags(self, env: str) -> httpx.Response:
        return await self._send("GET", "/flags", params={"env": env})

    async def update_flag(self, key: str, env: str, payload: Any) -> httpx.Response:
        """
        Обновляет флаг в указанном окружении.
        Тело передается как прислал браузер: {"enabled": bool}.
        """
        return await self._send("PUT", f"/admin/flags/{path_segment(key)}", params={"env": env}, json=payload)

    async def reload(self) -> httpx.Response:
        return await self._send("POST", "/admin/reload")

    async def health(self) -> httpx.Response:
        return await self._send("GET", "/health")
