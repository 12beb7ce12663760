import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Literal, Sequence, Set

import httpx
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from dashboard.core.config import settings
from dashboard.schemas.health import ServiceHealth


logger = logging.getLogger(__name__)

SystemHealth = Literal["healthy", "down", "loading"]
SweepCallback = Callable[[tuple[ServiceHealth, ...]], Any]


def make_targets(pairs: Iterable[tuple[str, str]]) -> tuple[ServiceHealth, ...]:
    """(name, url) -> исходные записи со статусом loading."""
    return tuple(ServiceHealth(name=name, url=url) for name, url in pairs)


def aggregate_health(services: Sequence[ServiceHealth]) -> SystemHealth:
    """down, если хоть один сервис unhealthy; loading, пока не все отчитались."""
    if any(s.status == "unhealthy" for s in services):
        return "down"
    if not services or any(s.status == "loading" for s in services):
        return "loading"
    return "healthy"


@dataclass(eq=False)
class PollHandle:
    """Токен отмены запущенного опроса."""
    job_id: str
    cancelled: bool = False
    tasks: Set[asyncio.Future] = field(default_factory=set)


class PollingAggregator:
    """
    Периодический опрос health-эндпоинтов через APScheduler.

    Каждый цикл: по одному запросу на сервис, параллельно, каждый с таймаутом;
    результат цикла отдается в on_sweep целиком, одним кортежем.
    """

    def __init__(self, client, timeout: float | None = None,
                 scheduler: AsyncIOScheduler | None = None):
        # client должен уметь probe(url, timeout=...) -> httpx.Response
        self.client = client
        self.timeout = settings.HEALTH_TIMEOUT_SECONDS if timeout is None else timeout
        self.scheduler = scheduler or AsyncIOScheduler()

    async def check(self, target: ServiceHealth) -> ServiceHealth:
        t0 = time.perf_counter()
        error: str | None = None
        status_code: int | None = None
        try:
            response: httpx.Response = await asyncio.wait_for(
                self.client.probe(target.url, timeout=self.timeout), self.timeout
            )
            status_code = response.status_code
            if not response.is_success:
                error = f"HTTP {response.status_code}"
        except asyncio.TimeoutError:
            error = f"Timed out after {self.timeout:g}s"
        except httpx.HTTPError as e:
            error = str(e) or e.__class__.__name__

        elapsed = round((time.perf_counter() - t0) * 1000)
        if error is None:
            return target.model_copy(update={"status": "healthy", "response_time": elapsed, "error": None})

        logger.warning("Health check failed for %s: %s", target.name, error,
                       extra={"extra": {"service": target.name, "url": target.url,
                                        "status_code": status_code, "elapsed_ms": elapsed}})
        return target.model_copy(update={"status": "unhealthy", "response_time": elapsed, "error": error})

    async def sweep(self, targets: Sequence[ServiceHealth]) -> tuple[ServiceHealth, ...]:
        results = await asyncio.gather(*(self.check(t) for t in targets))
        logger.info("Health sweep: %s", aggregate_health(results),
                    extra={"extra": {"services": {r.name: r.status for r in results}}})
        return tuple(results)

    def start(self, targets: Sequence[ServiceHealth], interval_seconds: float,
              on_sweep: SweepCallback,
              alongside: Callable[[], Awaitable[Any]] | None = None) -> PollHandle:
        """
        Первый цикл сразу, далее каждые interval_seconds до stop().

        alongside запускается в каждом цикле параллельно с опросом
        (например, загрузка статуса симуляции) и отменяется вместе с ним.
        """
        handle = PollHandle(job_id=f"health-sweep-{uuid.uuid4().hex[:8]}")
        targets = tuple(targets)

        async def run_sweep():
            if handle.cancelled:
                return
            sweep = asyncio.ensure_future(self.sweep(targets))
            running = {sweep}
            if alongside is not None:
                running.add(asyncio.ensure_future(alongside()))
            handle.tasks.update(running)
            try:
                await asyncio.wait(running)
            finally:
                handle.tasks.difference_update(running)
                for task in running:
                    if not task.done():
                        task.cancel()
            for task in running - {sweep}:
                if not task.cancelled() and task.exception() is not None:
                    logger.error("Sweep side task failed: %s", task.exception(),
                                 extra={"extra": {"job_id": handle.job_id}})
            if handle.cancelled or sweep.cancelled():
                return
            result = on_sweep(sweep.result())
            if inspect.isawaitable(result):
                await result

        if not self.scheduler.running:
            self.scheduler.start()
        self.scheduler.add_job(
            run_sweep,
            "interval",
            seconds=interval_seconds,
            id=handle.job_id,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        logger.info("Health polling started", extra={"extra": {"job_id": handle.job_id,
                                                                 "interval_seconds": interval_seconds,
                                                                 "targets": [t.url for t in targets]}})
        return handle

    def stop(self, handle: PollHandle) -> None:
        if handle.cancelled:
            return
        handle.cancelled = True
        try:
            self.scheduler.remove_job(handle.job_id)
        except JobLookupError:
            pass
        for task in list(handle.tasks):
            task.cancel()
        logger.info("Health polling stopped", extra={"extra": {"job_id": handle.job_id}})

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
