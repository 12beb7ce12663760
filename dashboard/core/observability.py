import asyncio
import functools
import inspect
import logging
import time
from typing import Any, Callable

from .logging import _redact, view_var

logger = logging.getLogger("steps")


def _elapsed_ms(t0: float) -> int:
    return round((time.perf_counter() - t0) * 1000)


def _step_extra(step: str, **fields: Any) -> dict:
    return {"extra": {"step": step, "view": view_var.get(), **fields}}


def log_step(step: str, *, expected: tuple[type[BaseException], ...] = ()):
    """
    Логирует вход, выход, тайминги и исключения шага.

    Исключения из ``expected`` (например, ApiError в контроллерах) пишутся
    как WARNING без трейсбека, остальные как ERROR. Отмена корутины при
    закрытии экрана пишется отдельно и пробрасывается дальше.

    Пример: @log_step("events.retry", expected=(ApiError,))
    """
    def on_enter(kwargs):
        logger.debug("ENTER %s", step, extra=_step_extra(step, args=_redact(kwargs)))

    def on_exit(t0, result):
        logger.info("EXIT %s", step, extra=_step_extra(step, elapsed_ms=_elapsed_ms(t0), result_preview=str(result)[:200]))

    def on_error(t0, e):
        if isinstance(e, expected):
            logger.warning("FAIL %s: %s", step, e, extra=_step_extra(step, elapsed_ms=_elapsed_ms(t0)))
        else:
            logger.error("ERROR %s: %s", step, e, extra=_step_extra(step, elapsed_ms=_elapsed_ms(t0)), exc_info=True)

    def decorator(fn: Callable):
        @functools.wraps(fn)
        async def awrapped(*args, **kwargs):
            t0 = time.perf_counter()
            on_enter(kwargs)
            try:
                result = await fn(*args, **kwargs)
            except asyncio.CancelledError:
                logger.info("CANCELLED %s", step, extra=_step_extra(step, elapsed_ms=_elapsed_ms(t0)))
                raise
            except Exception as e:
                on_error(t0, e)
                raise
            on_exit(t0, result)
            return result

        @functools.wraps(fn)
        def wrapped(*args, **kwargs):
            t0 = time.perf_counter()
            on_enter(kwargs)
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                on_error(t0, e)
                raise
            on_exit(t0, result)
            return result

        # Выбрать обертку по типу функции (async или sync)
        return awrapped if inspect.iscoroutinefunction(fn) else wrapped

    return decorator
