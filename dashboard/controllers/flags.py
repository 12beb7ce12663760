import logging
from typing import Dict, List

from .base import BaseController
from dashboard.core.config import settings
from dashboard.core.observability import log_step
from dashboard.integrations.errors import ApiError
from dashboard.integrations.gateway_client import GatewayApiClient
from dashboard.schemas.feature_flags import ENVIRONMENTS, FlagSet, FlagState
from dashboard.services.mutation_guard import MutationGuard
from dashboard.services.resource_store import ResourceStore


logger = logging.getLogger(__name__)

RELOAD_KEY = "__reload__"


class FlagsController(BaseController):
    """
    Экран фича-флагов.

    Переключение флага отправляет инвертированное текущее значение и при
    успехе обновляет только этот ключ, без полного перезапроса. Смена
    окружения выбрасывает старый набор целиком и загружает новый.
    """

    VIEW = "flags"

    def __init__(self, client: GatewayApiClient, guard: MutationGuard | None = None,
                 environment: str | None = None):
        super().__init__(client, guard)
        self.environment = environment or settings.DEFAULT_FLAGS_ENV
        self.search = ""
        self.flags: ResourceStore[FlagSet] = self._new_store()

    def _new_store(self) -> ResourceStore[FlagSet]:
        return ResourceStore(f"flags:{self.environment}", self.client.get_flags)

    @property
    def loading(self) -> bool:
        return self.flags.loading

    def is_updating(self, key: str) -> bool:
        return self.guard.is_busy(key)

    async def load(self) -> FlagSet | None:
        self.error = None
        result = await self._track(self.flags.load(env=self.environment))
        if self.flags.error:
            self.error = self.flags.error
        return result

    async def set_environment(self, environment: str) -> bool:
        if environment not in ENVIRONMENTS:
            self.error = f"Unknown environment: {environment}"
            return False
        if environment == self.environment:
            return False
        logger.info("Flags environment switched: %s -> %s", self.environment, environment)
        self.environment = environment
        # ответы по старому окружению, если они еще в полете, попадут в старый store
        self.flags = self._new_store()
        await self.load()
        return True

    @log_step("flags.toggle")
    async def toggle(self, key: str) -> bool:
        current = (self.flags.data or {}).get(key)
        if current is None:
            self.error = f'Unknown flag "{key}"'
            return False
        if not self.guard.try_acquire(key):
            return False

        store = self.flags
        self.error = None
        try:
            result: FlagState = await self._track(
                self.client.update_flag(key, not current, self.environment)
            )
        except ApiError as e:
            self.error = e.message
            return False
        finally:
            self.guard.release(key)

        if result is None or store is not self.flags:
            logger.info("Toggle result for %s dropped, view state changed", key)
            return False
        store.replace({**(store.data or {}), key: result.enabled})
        self.notice = f'Flag "{key}" {"enabled" if result.enabled else "disabled"} successfully'
        return True

    @log_step("flags.reload")
    async def reload_from_disk(self) -> bool:
        if not self.guard.try_acquire(RELOAD_KEY):
            return False
        self.error = None
        try:
            # тело ответа reload не важно, важен только успех
            await self._track(self.client.reload_flags())
        except ApiError as e:
            self.error = e.message
            return False
        finally:
            self.guard.release(RELOAD_KEY)

        if self.closed:
            return False
        await self.load()
        if self.flags.error:
            return False
        self.notice = "Flags reloaded from disk successfully"
        return True

    def visible_flags(self) -> List[FlagState]:
        query = self.search.strip().lower()
        return [
            FlagState(key=key, enabled=enabled)
            for key, enabled in (self.flags.data or {}).items()
            if query in key.lower()
        ]

    def counts(self) -> Dict[str, int]:
        visible = self.visible_flags()
        enabled = sum(1 for flag in visible if flag.enabled)
        return {"total": len(visible), "enabled": enabled, "disabled": len(visible) - enabled}
