import asyncio
import logging
from typing import Iterable, Sequence

from .base import BaseController
from dashboard.core.config import settings
from dashboard.integrations.gateway_client import GatewayApiClient
from dashboard.schemas.health import ServiceHealth, SimulationStatus
from dashboard.services.polling import PollHandle, PollingAggregator, SystemHealth, aggregate_health, make_targets
from dashboard.services.resource_store import ResourceStore
from dashboard.services.simulation import SimulationMode, derive_simulation_mode


logger = logging.getLogger(__name__)


class StatusController(BaseController):
    """Экран статуса: опрос health трех сервисов и режим симуляции outbox."""

    VIEW = "status"

    def __init__(self, client: GatewayApiClient, aggregator: PollingAggregator | None = None,
                 targets: Iterable[tuple[str, str]] | None = None,
                 interval_seconds: float | None = None):
        super().__init__(client)
        self._owns_aggregator = aggregator is None
        self.aggregator = aggregator or PollingAggregator(client)
        self.targets: tuple[ServiceHealth, ...] = make_targets(targets or settings.health_targets)
        self.interval_seconds = interval_seconds or settings.HEALTH_POLL_SECONDS
        self.services: tuple[ServiceHealth, ...] = self.targets
        self.simulation: ResourceStore[SimulationStatus] = ResourceStore(
            "simulation", self.client.get_simulation_status
        )
        self._handle: PollHandle | None = None

    @property
    def system_health(self) -> SystemHealth:
        return aggregate_health(self.services)

    @property
    def simulation_mode(self) -> SimulationMode:
        return derive_simulation_mode(self.simulation.data)

    @property
    def mounted(self) -> bool:
        return self._handle is not None

    def _apply_sweep(self, results: Sequence[ServiceHealth]) -> None:
        if self.closed:
            return
        # весь набор заменяется разом
        self.services = tuple(results)

    async def _load_simulation(self) -> SimulationStatus | None:
        # грузится параллельно с опросом, зависший сервис его не задерживает
        return await self._track(self.simulation.load())

    async def mount(self) -> PollHandle:
        """Запускает опрос один раз на монтирование экрана."""
        if self._handle is None:
            self.closed = False
            self._handle = self.aggregator.start(
                self.targets, self.interval_seconds, self._apply_sweep, alongside=self._load_simulation
            )
        return self._handle

    async def refresh(self) -> None:
        results, _ = await asyncio.gather(
            self._track(self.aggregator.sweep(self.targets)), self._load_simulation()
        )
        if results is not None:
            self._apply_sweep(results)

    async def unmount(self) -> None:
        if self._handle is not None:
            self.aggregator.stop(self._handle)
            self._handle = None
        await self.close()
        if self._owns_aggregator:
            self.aggregator.shutdown()
