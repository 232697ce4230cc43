"""Tests for periodic background tasks."""

import asyncio

from checkin_tracker.services.scheduler import PeriodicTask


def test_periodic_task_runs_until_stopped() -> None:
    calls: list[int] = []

    async def scenario() -> None:
        task = PeriodicTask("tick", 0.01, lambda: calls.append(1))
        task.start()
        assert task.running
        await asyncio.sleep(0.05)
        await task.stop()
        assert not task.running

    asyncio.run(scenario())

    assert len(calls) >= 1


def test_periodic_task_survives_failing_cycles() -> None:
    attempts: list[int] = []

    def flaky() -> None:
        attempts.append(1)
        raise RuntimeError("store unavailable")

    async def scenario() -> None:
        task = PeriodicTask("flaky", 0.01, flaky)
        task.start()
        await asyncio.sleep(0.08)
        assert task.running
        await task.stop()

    asyncio.run(scenario())

    assert len(attempts) >= 2


def test_start_twice_keeps_single_loop() -> None:
    async def scenario() -> None:
        task = PeriodicTask("tick", 10, lambda: None)
        task.start()
        first = task._task
        task.start()
        assert task._task is first
        await task.stop()

    asyncio.run(scenario())


def test_stop_without_start_is_noop() -> None:
    asyncio.run(PeriodicTask("idle", 1, lambda: None).stop())
