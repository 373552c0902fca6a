"""
Explicit periodic task runner.

The host process builds a ``Scheduler`` with its ``PeriodicTask`` entries and
starts/stops it; nothing is registered at import time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from booking_engine.config import Settings
from booking_engine.conversation.interface import ConversationEngine
from booking_engine.messaging.interface import MessagingGateway, TextChannel
from booking_engine.scheduling.outreach import ExhaustedRetryOutreach, ScarcityCallbackOutreach
from booking_engine.scheduling.retry import RetryScheduler
from booking_engine.scheduling.stores import StoreFactory
from booking_engine.shared.logging import get_logger

logger = get_logger(__name__)

TickFn = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class PeriodicTask:
    """A named tick executed every ``interval_seconds``."""

    name: str
    interval_seconds: float
    run: TickFn


class Scheduler:
    """Owns a set of periodic tasks and their asyncio loops."""

    def __init__(self, tasks: Sequence[PeriodicTask]) -> None:
        names = [t.name for t in tasks]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate periodic task names: {names}")
        self._tasks = {t.name: t for t in tasks}
        self._running: dict[str, asyncio.Task[None]] = {}

    @property
    def task_names(self) -> list[str]:
        return list(self._tasks)

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._running.values())

    async def run_once(self, name: str) -> Any:
        """Execute a single tick of ``name``; exceptions propagate to the caller."""
        try:
            task = self._tasks[name]
        except KeyError:
            raise KeyError(f"Unknown periodic task: {name}") from None
        return await task.run()

    async def _loop(self, task: PeriodicTask) -> None:
        logger.info(
            "Periodic task started",
            extra={"task": task.name, "interval_seconds": task.interval_seconds},
        )
        while True:
            try:
                await task.run()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Periodic task tick failed", extra={"task": task.name})

            await asyncio.sleep(task.interval_seconds)

    def start(self) -> None:
        if self.is_running:
            return
        for name, task in self._tasks.items():
            self._running[name] = asyncio.create_task(self._loop(task), name=f"periodic:{name}")

    async def stop(self) -> None:
        running = list(self._running.values())
        for t in running:
            t.cancel()
        for t in running:
            try:
                await t
            except asyncio.CancelledError:
                pass
        self._running.clear()
        if running:
            logger.info("Periodic tasks stopped", extra={"count": len(running)})


def build_scheduler(
    stores: StoreFactory,
    engine: ConversationEngine,
    gateway: MessagingGateway,
    text_channel: TextChannel,
    settings: Settings,
) -> Scheduler:
    """Wire the retry task and both outreach tasks at their configured cadences."""
    retry = RetryScheduler(stores, engine, settings)
    exhausted = ExhaustedRetryOutreach(stores, gateway, text_channel, settings)
    scarcity = ScarcityCallbackOutreach(stores, gateway, text_channel, settings)
    return Scheduler(
        [
            PeriodicTask(retry.name, settings.retry_interval_seconds, retry.run_once),
            PeriodicTask(exhausted.name, settings.outreach_interval_seconds, exhausted.run_once),
            PeriodicTask(scarcity.name, settings.outreach_interval_seconds, scarcity.run_once),
        ]
    )
