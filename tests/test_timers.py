from __future__ import annotations

import asyncio

import pytest

from utils import timers


def test_timed_window_expiry() -> None:
    window = timers.TimedWindow(duration=30.0, started_at=100.0)

    assert window.remaining(now=110.0) == 20.0
    assert window.expired(now=129.0) is False
    assert window.expired(now=130.0) is True


def test_schedule_after_runs_callback_once() -> None:
    calls: list[str] = []

    async def cleanup() -> None:
        calls.append("ran")

    async def scenario() -> None:
        task = timers.schedule_after(0.01, cleanup, name="test-cleanup")
        await task
        assert task.get_name() == "test-cleanup"

    asyncio.run(scenario())

    assert calls == ["ran"]


def test_schedule_after_rejects_negative_delay() -> None:
    async def scenario() -> None:
        with pytest.raises(ValueError):
            timers.schedule_after(-1, lambda: asyncio.sleep(0))

    asyncio.run(scenario())


def test_spawned_task_is_released_when_done() -> None:
    async def scenario() -> None:
        before = timers.pending_tasks()
        task = timers.spawn(asyncio.sleep(0))
        assert timers.pending_tasks() == before + 1
        await task
        await asyncio.sleep(0)
        assert timers.pending_tasks() == before

    asyncio.run(scenario())
