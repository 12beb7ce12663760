from typing import Any


SERVICE_UNAVAILABLE = "Service unavailable"


class ApiError(Exception):
    """Ошибка вызова шлюза, пригодная для показа оператору.

    ``status_code`` равен None для транспортных ошибок (сеть, таймаут).
    ``payload`` хранит разобранное тело ответа как есть.
    """

    def __init__(self, status_code: int | None, message: str, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload

    @property
    def is_transport(self) -> bool:
        return self.status_code is None

    @classmethod
    def from_response(cls, status_code: int, payload: Any, fallback: str) -> "ApiError":
        message = fallback
        if isinstance(payload, dict) and isinstance(payload.get("error"), str) and payload["error"]:
            message = payload["error"]
        return cls(status_code, message, payload)

    def __repr__(self) -> str:
        return f"ApiError(status_code={self.status_code!r}, message={self.message!r})"
