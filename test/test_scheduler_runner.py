"""
Tests for the periodic task runner.
"""

import asyncio

import pytest

from booking_engine.config import Settings
from booking_engine.scheduling.runner import PeriodicTask, Scheduler, build_scheduler


class TestScheduler:
    def test_duplicate_names_rejected(self) -> None:
        async def tick() -> None:
            return None

        with pytest.raises(ValueError):
            Scheduler([PeriodicTask("a", 1, tick), PeriodicTask("a", 2, tick)])

    @pytest.mark.asyncio
    async def test_run_once_returns_tick_result(self) -> None:
        async def tick() -> str:
            return "done"

        scheduler = Scheduler([PeriodicTask("a", 60, tick)])
        assert await scheduler.run_once("a") == "done"

        with pytest.raises(KeyError):
            await scheduler.run_once("missing")

    @pytest.mark.asyncio
    async def test_run_once_propagates_errors(self) -> None:
        async def tick() -> None:
            raise RuntimeError("boom")

        scheduler = Scheduler([PeriodicTask("a", 60, tick)])
        with pytest.raises(RuntimeError):
            await scheduler.run_once("a")

    @pytest.mark.asyncio
    async def test_loop_survives_failing_ticks_and_stops(self) -> None:
        calls: list[int] = []
        second_tick = asyncio.Event()

        async def tick() -> None:
            calls.append(1)
            if len(calls) >= 2:
                second_tick.set()
            raise RuntimeError("tick failed")

        scheduler = Scheduler([PeriodicTask("flaky", 0.01, tick)])
        scheduler.start()
        assert scheduler.is_running

        await asyncio.wait_for(second_tick.wait(), timeout=2)
        await scheduler.stop()

        assert len(calls) >= 2
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        started = asyncio.Event()
        runs: list[int] = []

        async def tick() -> None:
            runs.append(1)
            started.set()

        scheduler = Scheduler([PeriodicTask("once", 60, tick)])
        scheduler.start()
        scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=2)
        await asyncio.sleep(0)
        await scheduler.stop()

        assert runs == [1]


class TestBuildScheduler:
    @pytest.mark.asyncio
    async def test_wires_all_tasks(
        self, stores, conversation_engine, gateway, text_channel, test_settings: Settings
    ) -> None:
        scheduler = build_scheduler(stores, conversation_engine, gateway, text_channel, test_settings)

        assert scheduler.task_names == ["call-retry", "exhausted-outreach", "scarcity-callback"]

        result = await scheduler.run_once("call-retry")
        assert result.task == "call-retry"
        assert result.outcomes == {}
