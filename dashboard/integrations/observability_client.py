import httpx

from .base_client import BaseApiClient
from dashboard.core.config import Settings, settings as default_settings


class ObservabilityApiClient(BaseApiClient):
    def __init__(self, settings: Settings | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        cfg = settings or default_settings
        super().__init__(base_url=cfg.OBSERVABILITY_API_URL.rstrip("/"),
                         timeout=cfg.UPSTREAM_TIMEOUT_SECONDS, transport=transport)

    async def health(self) -> httpx.Response:
        return await self._send("GET", "/health")
