import json
import uuid
from datetime import datetime, timezone
from urllib.parse import unquote

import httpx
import pytest

from dashboard.core.config import Settings
from dashboard.integrations.gateway_client import GatewayApiClient
from dashboard.main import create_app
from dashboard.schemas.health import SUB_FLAGS


def raw_path(request: httpx.Request) -> str:
    # путь без декодирования: %2F внутри id не должен резать сегменты
    return request.url.raw_path.decode("ascii").split("?", 1)[0]


class FakeUpstreams:
    """In-memory outbox + feature flags + observability services behind one MockTransport."""

    def __init__(self):
        self.events: dict[str, dict] = {}
        self.flags: dict[str, dict[str, bool]] = {
            "local": {
                "new_checkout": True,
                "dark_mode": False,
                "simulation_mode_enabled": False,
                **{name: False for name in SUB_FLAGS},
            },
            "prod": {"new_checkout": False, "dark_mode": False},
        }
        self.health_status = {"outbox": 200, "flags": 200, "observability": 200}
        self.requests: list[httpx.Request] = []

    def add_event(self, status: str = "pending", **fields) -> dict:
        event = {
            "id": str(uuid.uuid4()),
            "type": "user.created",
            "source": "tests",
            "data": {"n": len(self.events)},
            "metadata": {},
            "status": status,
            "retry_count": 0,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "published_at": None,
            "last_error": "boom" if status == "failed" else None,
        }
        event.update(fields)
        self.events[event["id"]] = event
        return event

    def stats(self) -> dict:
        events = list(self.events.values())
        return {
            "total_events": len(events),
            "pending_events": sum(1 for e in events if e["status"] == "pending"),
            "published_events": sum(1 for e in events if e["status"] == "published"),
            "failed_events": sum(1 for e in events if e["status"] == "failed"),
            "retry_count": sum(e["retry_count"] for e in events),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == "outbox":
            return self._outbox(request)
        if host == "flags":
            return self._flags(request)
        if host == "observability":
            return httpx.Response(self.health_status["observability"], json={"status": "healthy"})
        return httpx.Response(404, json={"error": "unknown host"})

    def _outbox(self, request: httpx.Request) -> httpx.Response:
        path = raw_path(request)
        method = request.method
        if path == "/health":
            return httpx.Response(self.health_status["outbox"], json={"status": "healthy"})
        if path == "/admin/stats":
            return httpx.Response(200, json=self.stats())
        if path == "/admin/simulation-status":
            local = self.flags["local"]
            status = {name: local.get(name, False) for name in ("simulation_mode_enabled",) + SUB_FLAGS}
            status.update({"circuit_breaker_state": "CLOSED", "circuit_failure_count": 0})
            return httpx.Response(200, json={"simulation_status": status})
        if path == "/admin/publish":
            body = json.loads(request.content or b"{}")
            batch = body.get("batch_size") or 10
            published = 0
            for event in self.events.values():
                if event["status"] == "pending" and published < batch:
                    event["status"] = "published"
                    event["published_at"] = datetime.now(timezone.utc).isoformat()
                    published += 1
            return httpx.Response(200, json={"published": published, "failed": 0, "errors": None})
        if path == "/api/v1/events":
            if method == "POST":
                body = json.loads(request.content)
                if not body.get("type") or not body.get("source"):
                    return httpx.Response(400, json={"error": "type and source are required"})
                event = self.add_event(type=body["type"], source=body["source"],
                                       data=body.get("data"), metadata=body.get("metadata"))
                return httpx.Response(201, json={"event": event})
            params = request.url.params
            page = int(params.get("page", 1))
            limit = int(params.get("limit", 10))
            status = params.get("status")
            rows = [e for e in reversed(list(self.events.values())) if not status or e["status"] == status]
            chunk = rows[(page - 1) * limit: page * limit]
            return httpx.Response(200, json={"events": chunk or None, "total": len(rows),
                                             "page": page, "limit": limit})
        if path.startswith("/api/v1/events/"):
            parts = [unquote(p) for p in path[len("/api/v1/events/"):].split("/")]
            event = self.events.get(parts[0])
            if event is None:
                return httpx.Response(404, json={"error": "Event not found"})
            if len(parts) == 2 and parts[1] == "retry":
                if event["status"] != "failed":
                    return httpx.Response(400, json={"error": "Only failed events can be retried"})
                event["status"] = "retrying"
                event["retry_count"] += 1
                return httpx.Response(200, json={"message": "Event queued for retry"})
            if method == "DELETE":
                del self.events[event["id"]]
                return httpx.Response(200, json={"message": "Event deleted successfully"})
            return httpx.Response(200, json={"event": event})
        return httpx.Response(404, json={"error": "not found"})

    def _flags(self, request: httpx.Request) -> httpx.Response:
        path = raw_path(request)
        env = request.url.params.get("env", "local")
        if path == "/health":
            return httpx.Response(self.health_status["flags"], json={"status": "healthy"})
        if path == "/flags":
            return httpx.Response(200, json=self.flags.get(env, {}))
        if path == "/admin/reload":
            return httpx.Response(200, json={"status": "reloaded"})
        if path.startswith("/admin/flags/"):
            key = unquote(path[len("/admin/flags/"):])
            body = json.loads(request.content)
            if not isinstance(body.get("enabled"), bool):
                return httpx.Response(400, json={"error": "enabled must be a boolean"})
            if key not in self.flags.get(env, {}):
                return httpx.Response(404, json={"error": f"Flag {key} not found"})
            self.flags[env][key] = body["enabled"]
            return httpx.Response(200, json={"key": key, "enabled": body["enabled"]})
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def test_settings():
    return Settings(
        OUTBOX_API_URL="http://outbox",
        FEATURE_FLAGS_API_URL="http://flags",
        OBSERVABILITY_API_URL="http://observability",
        GATEWAY_URL="http://gateway",
        HEALTH_TIMEOUT_SECONDS=1.0,
    )


@pytest.fixture
def upstreams():
    return FakeUpstreams()


@pytest.fixture
def gateway_app(test_settings, upstreams):
    return create_app(test_settings, transport=httpx.MockTransport(upstreams.handler))


@pytest.fixture
def gateway_client(test_settings, gateway_app):
    """Клиент контроллеров, который ходит в настоящий шлюз через ASGI."""
    return GatewayApiClient(test_settings, transport=httpx.ASGITransport(app=gateway_app))
