import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from .base import BaseController
from dashboard.core.config import settings
from dashboard.core.observability import log_step
from dashboard.integrations.errors import ApiError
from dashboard.integrations.gateway_client import GatewayApiClient
from dashboard.schemas.health import SUB_FLAGS, SimulationStatus
from dashboard.schemas.outbox import (
    EVENT_STATUSES,
    EventDraft,
    EventPage,
    OutboxEvent,
    OutboxStats,
    PublishRequest,
    PublishResult,
)
from dashboard.services.mutation_guard import MutationGuard, MutationInFlight
from dashboard.services.resource_store import ResourceStore, clamp_page
from dashboard.services.simulation import SimulationMode, derive_simulation_mode


logger = logging.getLogger(__name__)

SIMULATION_FLAGS: tuple[str, ...] = ("simulation_mode_enabled",) + SUB_FLAGS
# флаги симуляции живут в сервисе флагов, в локальном окружении
SIMULATION_FLAGS_ENV = "local"


def _validation_message(e: ValueError) -> str:
    if isinstance(e, ValidationError):
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "request"
        return f"{field}: {first.get('msg', 'invalid value')}"
    return str(e)


def _retry_message(e: ApiError) -> str:
    if e.status_code == 404:
        return "Event not found"
    if e.status_code == 400:
        # ошибку валидации сервиса показываем как есть
        if isinstance(e.payload, dict) and isinstance(e.payload.get("error"), str):
            return e.payload["error"]
        return json.dumps(e.payload, ensure_ascii=False) if e.payload else e.message
    if e.is_transport:
        return e.message
    return "Failed to retry event"


class EventsController(BaseController):
    """
    Экран событий outbox: список с фильтром и пагинацией, агрегаты,
    действия create / retry / delete / publish и управление симуляцией.

    После каждой успешной мутации заново запрашиваются и список, и
    агрегаты: это два независимых запроса, короткое расхождение между
    ними допустимо.
    """

    VIEW = "events"

    def __init__(self, client: GatewayApiClient, guard: MutationGuard | None = None,
                 limit: int | None = None):
        super().__init__(client, guard)
        self.limit = limit or settings.EVENTS_PAGE_SIZE
        self.page = 1
        self.status_filter: str | None = None
        self.selected: OutboxEvent | None = None
        self.events: ResourceStore[EventPage] = ResourceStore("events", self.client.list_events)
        self.stats: ResourceStore[OutboxStats] = ResourceStore("stats", self.client.get_stats)
        self.simulation: ResourceStore[SimulationStatus] = ResourceStore(
            "simulation", self.client.get_simulation_status
        )

    # --- derived state ---

    @property
    def loading(self) -> bool:
        return self.events.loading

    @property
    def total_pages(self) -> int:
        return self.events.data.total_pages if self.events.data else 0

    @property
    def rows(self) -> list[OutboxEvent]:
        return list(self.events.data.events) if self.events.data else []

    @property
    def simulation_mode(self) -> SimulationMode:
        return derive_simulation_mode(self.simulation.data)

    # --- loading ---

    async def load_events(self) -> EventPage | None:
        self.error = None
        page = await self._track(
            self.events.load(page=self.page, limit=self.limit, status=self.status_filter)
        )
        if self.events.error:
            self.error = self.events.error
            return page
        clamped = clamp_page(self.page, self.total_pages)
        if page is not None and clamped != self.page:
            # после удаления последней записи страница могла исчезнуть
            self.page = clamped
            page = await self._track(
                self.events.load(page=self.page, limit=self.limit, status=self.status_filter)
            )
            if self.events.error:
                self.error = self.events.error
        return page

    async def load_stats(self) -> OutboxStats | None:
        # ошибку агрегатов не выносим в баннер, store ее логирует
        return await self._track(self.stats.load())

    async def refresh(self) -> None:
        await asyncio.gather(self.load_events(), self.load_stats())

    async def set_status_filter(self, status: str | None) -> None:
        status = status or None
        if status is not None and status not in EVENT_STATUSES:
            self.error = f"Unknown status filter: {status}"
            return
        self.status_filter = status
        self.page = 1
        await self.load_events()

    async def go_to_page(self, page: int) -> None:
        target = clamp_page(page, self.total_pages)
        if target == self.page:
            return
        self.page = target
        await self.load_events()

    async def view_event(self, event_id: str) -> OutboxEvent | None:
        try:
            event = await self._track(self.client.get_event(event_id))
        except ApiError as e:
            self.error = "Event not found" if e.status_code == 404 else e.message
            return None
        self.selected = event
        return event

    def close_detail(self) -> None:
        self.selected = None

    # --- mutations ---

    async def _mutate(self, key: str, call: Callable[[], Awaitable[Any]],
                      on_error: Callable[[ApiError], str] | None = None) -> tuple[bool, Any]:
        """Одна мутация под ключом guard; при успехе - перезапрос списка и агрегатов."""
        try:
            with self.guard.hold(key):
                self.error = None
                try:
                    result = await self._track(call())
                except ApiError as e:
                    self.error = on_error(e) if on_error else e.message
                    return False, None
        except MutationInFlight:
            return False, None
        if self.closed:
            return False, None
        await self.refresh()
        return True, result

    @log_step("events.create")
    async def create_event(self, draft: EventDraft) -> bool:
        ok, _ = await self._mutate("create", lambda: self.client.create_event(draft))
        if ok:
            self.notice = "Event created successfully"
        return ok

    async def create_event_from_text(self, type: str, source: str, data_text: str,
                                     metadata_text: str = "{}") -> bool:
        """Проверка формы до сети: некорректный JSON или пустые поля не уходят в шлюз."""
        try:
            draft = EventDraft.from_json_text(type, source, data_text, metadata_text)
        except ValueError as e:
            self.error = _validation_message(e)
            logger.info("Event draft rejected: %s", self.error)
            return False
        return await self.create_event(draft)

    @log_step("events.retry")
    async def retry_event(self, event_id: str) -> bool:
        ok, result = await self._mutate(
            event_id, lambda: self.client.retry_event(event_id), on_error=_retry_message
        )
        if ok:
            message = result.get("message") if isinstance(result, dict) else None
            self.notice = message or "Event retried"
        return ok

    @log_step("events.delete")
    async def delete_event(self, event_id: str) -> bool:
        def on_error(e: ApiError) -> str:
            return "Event not found" if e.status_code == 404 else e.message

        ok, _ = await self._mutate(event_id, lambda: self.client.delete_event(event_id), on_error=on_error)
        if ok:
            if self.selected is not None and self.selected.id == event_id:
                self.selected = None
            self.notice = "Event deleted successfully"
        return ok

    @log_step("events.publish")
    async def publish_pending(self) -> PublishResult | None:
        request = PublishRequest(batch_size=settings.PUBLISH_BATCH_SIZE)
        ok, result = await self._mutate("publish", lambda: self.client.publish(request))
        if not ok:
            return None
        self.notice = f"Published {result.published} events, {result.failed} failed"
        return result

    # --- simulation controls ---

    async def refresh_simulation(self) -> SimulationStatus | None:
        return await self._track(self.simulation.load())

    @log_step("events.simulation_flag")
    async def set_simulation_flag(self, flag: str, enabled: bool) -> bool:
        if flag not in SIMULATION_FLAGS:
            self.error = f"Unknown simulation flag: {flag}"
            return False
        if flag != "simulation_mode_enabled":
            status = self.simulation.data
            if status is None or not status.simulation_mode_enabled:
                self.error = "Simulation mode is disabled"
                return False

        ok, _ = await self._mutate(
            f"simulation:{flag}",
            lambda: self.client.update_flag(flag, enabled, SIMULATION_FLAGS_ENV),
            on_error=lambda e: f"Failed to update {flag}",
        )
        if ok:
            await self.refresh_simulation()
        return ok
