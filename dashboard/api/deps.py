import json
import logging
from typing import Any, Awaitable, Callable

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse

from dashboard.integrations.base_client import parse_json_body
from dashboard.integrations.feature_flags_client import FeatureFlagsApiClient
from dashboard.integrations.observability_client import ObservabilityApiClient
from dashboard.integrations.outbox_client import OutboxApiClient


logger = logging.getLogger(__name__)


class InvalidBody(ValueError):
    pass


def get_outbox_client(request: Request) -> OutboxApiClient:
    return request.app.state.outbox_client


def get_feature_flags_client(request: Request) -> FeatureFlagsApiClient:
    return request.app.state.feature_flags_client


def get_observability_client(request: Request) -> ObservabilityApiClient:
    return request.app.state.observability_client


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def upstream_error(response: httpx.Response, fallback: str) -> JSONResponse:
    """Статус upstream-а как есть, сообщение из его тела или общее."""
    body = parse_json_body(response)
    message = body.get("error") if isinstance(body, dict) else None
    return error_response(response.status_code, message or fallback)


def passthrough(response: httpx.Response) -> JSONResponse:
    return JSONResponse(parse_json_body(response), status_code=response.status_code)


async def read_json_body(request: Request, default: Any = None) -> Any:
    """Тело запроса браузера; пустое тело -> default, битый JSON -> InvalidBody."""
    raw = await request.body()
    if not raw:
        if default is None:
            raise InvalidBody("Request body is required")
        return default
    try:
        return json.loads(raw)
    except ValueError as e:
        raise InvalidBody("Invalid JSON body") from e


async def health_response(call: Callable[[], Awaitable[httpx.Response]], service: str) -> JSONResponse:
    """Любая неудача проверки -> 503 {"status": "unhealthy"}."""
    try:
        response = await call()
        if not response.is_success:
            logger.warning("%s health returned %d", service, response.status_code,
                           extra={"extra": {"service": service, "status_code": response.status_code}})
            return JSONResponse({"status": "unhealthy"}, status_code=503)
        return JSONResponse(parse_json_body(response))
    except Exception as e:
        logger.error("Error checking %s health: %s", service, e, extra={"extra": {"service": service}})
        return JSONResponse({"status": "unhealthy"}, status_code=503)
