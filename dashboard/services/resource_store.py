import logging
from typing import Any, Awaitable, Callable, Generic, List, TypeVar

from dashboard.integrations.errors import ApiError


logger = logging.getLogger(__name__)

T = TypeVar("T")
Listener = Callable[["ResourceStore[Any]"], None]


def total_pages(total: int, limit: int) -> int:
    """ceil(total / limit) в целых числах; limit должен быть > 0."""
    if limit <= 0:
        raise ValueError("limit must be positive")
    return -(-max(total, 0) // limit)


def clamp_page(page: int, pages: int) -> int:
    """Держит номер страницы в пределах [1, max(1, pages)]."""
    return min(max(1, page), max(1, pages))


class ResourceStore(Generic[T]):
    """
    Асинхронное хранилище одного удаленного ресурса: loading / error / data.

    - один вызов load() = ровно один сетевой запрос;
    - при ошибке data не трогаем (устаревшие, но доступные данные);
    - при нескольких параллельных load() побеждает ответ, пришедший последним;
    - loading остается True, пока есть хотя бы один незавершенный load().
    """

    def __init__(self, name: str, fetch: Callable[..., Awaitable[T]]):
        self.name = name
        self._fetch = fetch
        self._inflight = 0
        self._listeners: List[Listener] = []
        self.data: T | None = None
        self.error: str | None = None

    @property
    def loading(self) -> bool:
        return self._inflight > 0

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    async def load(self, **params) -> T | None:
        self._inflight += 1
        self.error = None
        self._notify()
        try:
            result = await self._fetch(**params)
        except ApiError as e:
            logger.warning("Load %s failed: %s", self.name, e.message,
                           extra={"extra": {"store": self.name, "status_code": e.status_code, "params": params}})
            self.error = e.message
            return None
        else:
            self.data = result
            return result
        finally:
            self._inflight -= 1
            self._notify()

    def replace(self, data: T) -> None:
        """Подмена данных целиком (оптимистичное обновление после успешной мутации)."""
        self.data = data
        self._notify()

    def reset(self) -> None:
        self.data = None
        self.error = None
        self._notify()
