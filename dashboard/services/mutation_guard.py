import logging
from contextlib import contextmanager
from typing import Iterator, Set


logger = logging.getLogger(__name__)


class MutationInFlight(Exception):
    def __init__(self, key: str):
        super().__init__(f"Mutation already in progress for {key!r}")
        self.key = key


class MutationGuard:
    """
    Не больше одной мутации в полете на ключ ресурса.

    Повторный запрос по занятому ключу отклоняется, а не ставится в очередь.
    Это защита интерфейса на стороне клиента: от других вкладок и от
    изменений на сервере она не спасает.
    """

    def __init__(self):
        self._busy: Set[str] = set()

    def try_acquire(self, key: str) -> bool:
        if key in self._busy:
            logger.info("Mutation rejected, key busy: %s", key, extra={"extra": {"key": key}})
            return False
        self._busy.add(key)
        return True

    def release(self, key: str) -> None:
        self._busy.discard(key)

    def is_busy(self, key: str) -> bool:
        return key in self._busy

    @property
    def busy(self) -> frozenset[str]:
        return frozenset(self._busy)

    @contextmanager
    def hold(self, key: str) -> Iterator[str]:
        if not self.try_acquire(key):
            raise MutationInFlight(key)
        try:
            yield key
        finally:
            self.release(key)
