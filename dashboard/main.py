import logging
import uuid
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from dashboard.api.v1.endpoints import feature_flags, observability, outbox, webhook
from dashboard.core.config import Settings, settings as default_settings
from dashboard.core.logging import configure_logging, request_id_var, set_run_id
from dashboard.integrations.feature_flags_client import FeatureFlagsApiClient
from dashboard.integrations.observability_client import ObservabilityApiClient
from dashboard.integrations.outbox_client import OutboxApiClient

# Initialize logging before anything else
configure_logging()
set_run_id()  # Set unique run ID for this application instance

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None,
               transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """
    Шлюз дашборда: браузер ходит только сюда, шлюз проксирует в upstream-сервисы.
    transport подменяется в тестах (httpx.MockTransport).
    """
    cfg = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Gateway started", extra={"extra": {
            "outbox": cfg.OUTBOX_API_URL,
            "feature_flags": cfg.FEATURE_FLAGS_API_URL,
            "observability": cfg.OBSERVABILITY_API_URL,
        }})
        yield
        logger.info("Shutting down gateway clients...")
        await app.state.outbox_client.close()
        await app.state.feature_flags_client.close()
        await app.state.observability_client.close()

    app = FastAPI(title=cfg.PROJECT_NAME, version="1.0.0", lifespan=lifespan)
    app.state.settings = cfg
    app.state.outbox_client = OutboxApiClient(cfg, transport=transport)
    app.state.feature_flags_client = FeatureFlagsApiClient(cfg, transport=transport)
    app.state.observability_client = ObservabilityApiClient(cfg, transport=transport)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = rid
        return response

    @app.get("/", tags=["Health Check"])
    def read_root():
        return {"status": "ok", "project_name": cfg.PROJECT_NAME}

    app.include_router(outbox.router, prefix="/api", tags=["Outbox"])
    app.include_router(feature_flags.router, prefix="/api", tags=["Feature Flags"])
    app.include_router(observability.router, prefix="/api", tags=["Observability"])
    app.include_router(webhook.router, prefix="/api", tags=["Webhook"])
    return app


app = create_app()
