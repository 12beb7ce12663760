import asyncio
import logging
from typing import Any, Awaitable, Set

from dashboard.core.logging import set_view
from dashboard.integrations.gateway_client import GatewayApiClient
from dashboard.services.mutation_guard import MutationGuard


logger = logging.getLogger(__name__)


class BaseController:
    """
    Общая часть контроллеров экранов.

    Все сетевые вызовы экрана идут через _track(): close() при уходе с
    экрана отменяет то, что еще в полете. Ошибки операций не роняют экран,
    а попадают в error; сообщения об успехе попадают в notice.
    """

    VIEW = "dashboard"

    def __init__(self, client: GatewayApiClient, guard: MutationGuard | None = None):
        self.client = client
        self.guard = guard or MutationGuard()
        self.error: str | None = None
        self.notice: str | None = None
        self.closed = False
        self._tasks: Set[asyncio.Task] = set()

    async def _track(self, aw: Awaitable[Any]) -> Any:
        if self.closed:
            if asyncio.iscoroutine(aw):
                aw.close()
            logger.debug("View %s is closed, call skipped", self.VIEW)
            return None
        set_view(self.VIEW)
        task = asyncio.ensure_future(aw)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        try:
            await asyncio.wait({task})
        finally:
            if not task.done():
                task.cancel()
        if task.cancelled():
            # экран закрыт, ответ никому не нужен
            return None
        return task.result()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def busy(self) -> frozenset[str]:
        return self.guard.busy

    def dismiss(self) -> None:
        self.error = None
        self.notice = None

    async def close(self) -> None:
        """Отмена всех запросов экрана."""
        self.closed = True
        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("View %s closed", self.VIEW, extra={"extra": {"cancelled": len(tasks)}})
