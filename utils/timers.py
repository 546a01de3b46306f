"""
Timing Utilities — Shared Scheduling Helpers

THIS MODULE DEFINES NO COMMANDS.

Provides reusable utilities for:
- Timed execution windows
- Deferred callbacks (fallback cleanup timers)
- Fire-and-forget background tasks that are not garbage collected mid-flight
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

_background_tasks: Set[asyncio.Task] = set()


def _now() -> float:
    """Return a monotonic timestamp in seconds."""
    return time.monotonic()


def remaining_time(start: float, duration: float, *, now: Optional[float] = None) -> float:
    """Return remaining time in a window, clamped to zero."""
    current = _now() if now is None else now
    return max(0.0, (start + duration) - current)


@dataclass
class TimedWindow:
    """Simple helper for checking fixed duration windows."""

    duration: float
    started_at: float = field(default_factory=_now)

    def remaining(self, *, now: Optional[float] = None) -> float:
        return remaining_time(self.started_at, self.duration, now=now)

    def expired(self, *, now: Optional[float] = None) -> bool:
        return self.remaining(now=now) <= 0.0


def _log_task_failure(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Background task %s failed", task.get_name(), exc_info=error)


def spawn(coro: Awaitable[object], *, name: Optional[str] = None) -> asyncio.Task:
    """Run a coroutine in the background, keeping a strong reference to it."""
    task = asyncio.ensure_future(coro)
    if name:
        task.set_name(name)
    _background_tasks.add(task)
    task.add_done_callback(_log_task_failure)
    return task


def schedule_after(
    delay: float,
    callback: Callable[[], Awaitable[object]],
    *,
    name: Optional[str] = None,
) -> asyncio.Task:
    """Await `callback()` once `delay` seconds have passed.

    There is no explicit cancellation; the callback must cope with finding
    its work already done.
    """
    if delay < 0:
        raise ValueError("delay must be >= 0")

    async def _delayed() -> None:
        await asyncio.sleep(delay)
        await callback()

    return spawn(_delayed(), name=name)


def pending_tasks() -> int:
    return len(_background_tasks)
