import json

import httpx
import pytest

from dashboard.core.config import Settings
from dashboard.integrations.errors import ApiError
from dashboard.integrations.gateway_client import GatewayApiClient
from dashboard.schemas.health import CircuitBreakerState
from dashboard.schemas.outbox import EventDraft, PublishRequest


EVENT = {
    "id": "e1",
    "type": "user.created",
    "source": "tests",
    "data": {"a": 1},
    "status": "failed",
    "retry_count": 2,
    "created_at": "2024-05-01T10:00:00Z",
    "last_error": "webhook returned 500",
}


def make_client(handler) -> GatewayApiClient:
    cfg = Settings(_env_file=None, GATEWAY_URL="http://gateway")
    return GatewayApiClient(cfg, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_list_events_builds_query_and_parses_page():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        return httpx.Response(200, json={"events": None, "total": 0, "page": 1, "limit": 10})

    client = make_client(handler)
    page = await client.list_events(page=1, limit=10, status="failed")

    assert seen["url"].path == "/api/outbox/events"
    assert seen["url"].params["status"] == "failed"
    assert seen["url"].params["page"] == "1"
    assert page.events == []
    assert page.total_pages == 0
    await client.close()


@pytest.mark.asyncio
async def test_list_events_without_filter_omits_status():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"events": [EVENT], "total": 11, "page": 2, "limit": 10})

    client = make_client(handler)
    page = await client.list_events(page=2, limit=10)

    assert "status" not in seen["params"]
    assert page.total_pages == 2
    assert page.events[0].error_message == "webhook returned 500"
    await client.close()


@pytest.mark.asyncio
async def test_get_event_unwraps_envelope():
    client = make_client(lambda request: httpx.Response(200, json={"event": EVENT}))
    event = await client.get_event("e1")
    assert event.id == "e1"
    assert event.retry_count == 2
    await client.close()


@pytest.mark.asyncio
async def test_unexpected_shape_becomes_api_error():
    client = make_client(lambda request: httpx.Response(200, json={"total": -1}))
    with pytest.raises(ApiError) as exc_info:
        await client.list_events(page=1, limit=10)
    assert exc_info.value.message == "Failed to fetch events"
    assert exc_info.value.is_transport
    await client.close()


@pytest.mark.asyncio
async def test_create_event_sends_draft():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"event": {**EVENT, "status": "pending"}})

    client = make_client(handler)
    event = await client.create_event(EventDraft(type=" order.placed ", source="shop", data={"id": 7}))

    assert seen["body"] == {"type": "order.placed", "source": "shop", "data": {"id": 7}}
    assert event.status == "pending"
    await client.close()


@pytest.mark.asyncio
async def test_publish_sends_batch_size():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"published": 3, "failed": 1, "errors": None})

    client = make_client(handler)
    result = await client.publish(PublishRequest(batch_size=10))

    assert seen["body"] == {"batch_size": 10}
    assert (result.published, result.failed, result.errors) == (3, 1, [])
    await client.close()


@pytest.mark.asyncio
async def test_simulation_status_parsing():
    payload = {"simulation_status": {
        "simulation_mode_enabled": True,
        "force_webhook_failures": True,
        "circuit_breaker_state": "HALF_OPEN",
        "circuit_failure_count": 3,
    }}
    client = make_client(lambda request: httpx.Response(200, json=payload))
    status = await client.get_simulation_status()

    assert status.circuit_breaker_state is CircuitBreakerState.HALF_OPEN
    assert status.active_sub_flags() == ["force_webhook_failures"]
    await client.close()


@pytest.mark.asyncio
async def test_update_flag_sends_env_and_strict_body():
    seen = {}

    def handler(request):
        seen["env"] = request.url.params["env"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"enabled": False})

    client = make_client(handler)
    state = await client.update_flag("dark_mode", False, "prod")

    assert seen == {"env": "prod", "body": {"enabled": False}}
    assert state.key == "dark_mode"
    assert state.enabled is False
    await client.close()


@pytest.mark.asyncio
async def test_get_flags_rejects_non_boolean_values():
    client = make_client(lambda request: httpx.Response(200, json=["not", "a", "map"]))
    with pytest.raises(ApiError):
        await client.get_flags("local")
    await client.close()


@pytest.mark.asyncio
async def test_probe_returns_any_status():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(503, json={"status": "unhealthy"})

    client = make_client(handler)
    response = await client.probe("http://gateway/api/outbox/health", timeout=2.0)

    assert response.status_code == 503
    assert seen["url"] == "http://gateway/api/outbox/health"
    await client.close()


@pytest.mark.asyncio
async def test_path_segments_are_escaped():
    seen = []

    def handler(request):
        seen.append(request.url.raw_path)
        return httpx.Response(200, json={"key": "team/beta", "enabled": True, "message": "ok"})

    client = make_client(handler)
    await client.retry_event("a?b#c")
    await client.update_flag("team/beta", True, "local")

    assert seen[0] == b"/api/outbox/events/a%3Fb%23c/retry"
    assert seen[1] == b"/api/feature-flags/admin/flags/team%2Fbeta?env=local"
    await client.close()
