import hashlib
import httpx
import logging
import os
import time
from typing import Any
from urllib.parse import quote

from dashboard.core.logging import _redact, request_id_var
from .errors import ApiError, SERVICE_UNAVAILABLE


LOG_BODY_MAX = int(os.getenv("LOG_BODY_MAX", "2000"))


def _sample_rate() -> float:
    # читаем при каждом вызове, чтобы переключать выборку без рестарта
    return float(os.getenv("LOG_SAMPLE_RATE", "1.0"))


def path_segment(value: str) -> str:
    """Один сегмент пути: id и ключи могут содержать /, ? и #."""
    return quote(str(value), safe="")


def parse_json_body(response: httpx.Response) -> Any:
    """Parse HTTP response with safe JSON handling."""
    # Пустой ответ (например, 204 No Content)
    if response.status_code == 204 or not response.content:
        return {}

    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            # Некорректный JSON: пустой словарь
            return {}

    return {}


class BaseApiClient:
    """Тонкая обертка над httpx.AsyncClient с подробным логированием.

    Повторов нет: транспортная ошибка сразу уходит наверх, решение о
    повторе принимает оператор.
    """

    def __init__(self, base_url: str, timeout: float = 30.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self._logger = logging.getLogger("http")

    def _maybe_hash(self, body: str) -> str:
        return hashlib.sha256(body.encode("utf-8", "ignore")).hexdigest()[:16]

    def _outgoing_headers(self, headers: dict | None) -> dict:
        merged = dict(headers or {})
        request_id = request_id_var.get()
        if request_id and "X-Request-ID" not in merged:
            merged["X-Request-ID"] = request_id
        return merged

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Отправляет запрос и возвращает ответ с любым статусом.

        Транспортные ошибки (httpx.HTTPError) логируются и пробрасываются.
        """
        t0 = time.perf_counter()
        kwargs["headers"] = self._outgoing_headers(kwargs.get("headers"))
        req_body = kwargs.get("content") or (kwargs.get("json") is not None and str(kwargs["json"])) or ""
        self._logger.debug("HTTP %s %s", method, url,
                           extra={"extra": {"method": method, "url": str(url),
                                            "headers": _redact(kwargs["headers"]),
                                            "params": _redact(dict(kwargs.get("params") or {})),
                                            "body_preview": str(req_body)[:LOG_BODY_MAX]}})
        try:
            response: httpx.Response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            dt = round((time.perf_counter() - t0) * 1000)
            self._logger.error("HTTP FAIL %s %s: %s", method, url, repr(e),
                               extra={"extra": {"method": method, "url": str(url), "elapsed_ms": dt}})
            raise

        dt = round((time.perf_counter() - t0) * 1000)
        body_text = response.text or ""
        body_hash = self._maybe_hash(body_text)
        if _sample_rate() >= 1.0:
            body_preview = body_text[:LOG_BODY_MAX]
        else:
            body_preview = f"[sampled hash:{body_hash}]"

        log = self._logger.info if response.is_success else self._logger.warning
        log("HTTP %s %s -> %d in %dms", method, url, response.status_code, dt,
            extra={"extra": {"method": method, "url": str(url), "status_code": response.status_code,
                             "elapsed_ms": dt, "response_preview": body_preview,
                             "response_hash": body_hash}})
        return response

    def _parse_response(self, response: httpx.Response) -> Any:
        return parse_json_body(response)

    async def _request(self, method: str, url: str, *, failure: str = "Request failed", **kwargs) -> Any:
        """Запрос с разбором ответа: 2xx -> тело, иначе ApiError."""
        try:
            response = await self._send(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(None, SERVICE_UNAVAILABLE) from e

        payload = self._parse_response(response)
        if not response.is_success:
            raise ApiError.from_response(response.status_code, payload, failure)
        return payload

    async def close(self):
        await self.client.aclose()
