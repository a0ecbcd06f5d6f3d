"""Timing helpers: duration measurement and debug-mode performance logging."""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, TypeVar

from mermaid_bridge.observe.log import StructuredLogger

T = TypeVar("T")


class Timer:
    """Simple context-manager timer for measuring elapsed milliseconds."""

    def __init__(self) -> None:
        self.start: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed_ms = (time.perf_counter() - self.start) * 1000


def _report(log: StructuredLogger, operation: str, timer: Timer, error: BaseException | None) -> None:
    duration = round(timer.elapsed_ms, 2)
    if error is None:
        log.debug(
            f"Performance: {operation} completed in {timer.elapsed_ms:.2f}ms",
            {"operation": operation, "duration": duration},
        )
    else:
        log.debug(
            f"Performance: {operation} failed after {timer.elapsed_ms:.2f}ms",
            {"operation": operation, "duration": duration, "error": error},
        )


def measure_performance(
    log: StructuredLogger, operation: str, fn: Callable[..., T], /, *args: Any, **kwargs: Any
) -> T:
    """Run ``fn`` and, in debug mode, log how long it took. Errors are re-raised.

    The first three parameters are positional-only so that keyword arguments
    such as ``log=`` are forwarded to ``fn`` untouched.
    """
    if not log.debug_mode:
        return fn(*args, **kwargs)
    timer = Timer()
    try:
        with timer:
            result = fn(*args, **kwargs)
    except Exception as e:
        _report(log, operation, timer, e)
        raise
    _report(log, operation, timer, None)
    return result


async def measure_performance_async(
    log: StructuredLogger, operation: str, fn: Callable[..., Awaitable[T]], /, *args: Any, **kwargs: Any
) -> T:
    """Async counterpart of ``measure_performance``."""
    if not log.debug_mode:
        return await fn(*args, **kwargs)
    timer = Timer()
    try:
        with timer:
            result = await fn(*args, **kwargs)
    except Exception as e:
        _report(log, operation, timer, e)
        raise
    _report(log, operation, timer, None)
    return result
