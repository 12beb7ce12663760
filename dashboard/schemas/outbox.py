import json
from datetime import datetime
from typing import Any, Dict, List, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from dashboard.services.resource_store import total_pages


EventStatus = Literal["pending", "published", "failed", "retrying"]
EVENT_STATUSES: tuple[str, ...] = ("pending", "published", "failed", "retrying")


class OutboxEvent(BaseModel):
    """Событие outbox в том виде, как его отдает сервис."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    type: str
    source: str
    data: Any = None
    metadata: Any | None = None
    status: EventStatus
    retry_count: int = Field(default=0, ge=0)
    created_at: datetime
    published_at: datetime | None = None
    # сервис называет поле last_error
    error_message: str | None = Field(
        default=None, validation_alias=AliasChoices("error_message", "last_error")
    )


class EventPage(BaseModel):
    events: List[OutboxEvent] = Field(default_factory=list)
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(gt=0)

    @field_validator("events", mode="before")
    @classmethod
    def _null_events(cls, value):
        # пустой список приходит из сервиса как null
        return [] if value is None else value

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)


class OutboxStats(BaseModel):
    total_events: int = Field(default=0, ge=0)
    pending_events: int = Field(default=0, ge=0)
    published_events: int = Field(default=0, ge=0)
    failed_events: int = Field(default=0, ge=0)
    retry_count: int = Field(default=0, ge=0)


class EventDraft(BaseModel):
    """
    Тело запроса на создание события.
    Проверяется до отправки: пустые type/source и некорректный JSON
    не доходят до шлюза.
    """
    type: str = Field(min_length=1)
    source: str = Field(min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] | None = None

    @field_validator("type", "source", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @classmethod
    def from_json_text(cls, type: str, source: str, data_text: str,
                       metadata_text: str = "{}") -> "EventDraft":
        """Собирает черновик из сырых полей формы (JSON в виде текста)."""
        try:
            data = json.loads(data_text or "{}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in data: {e.msg}") from e
        try:
            metadata = json.loads(metadata_text or "{}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in metadata: {e.msg}") from e
        return cls(type=type, source=source, data=data, metadata=metadata)


class PublishRequest(BaseModel):
    batch_size: int | None = Field(default=None, gt=0)
    event_ids: List[str] | None = None


class PublishResult(BaseModel):
    published: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)

    @field_validator("errors", mode="before")
    @classmethod
    def _null_errors(cls, value):
        return [] if value is None else value
