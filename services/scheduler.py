"""Cancellable timers on the running asyncio loop."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from core.log import get_logger


logger = get_logger("scheduler")

Job = Callable[[], Awaitable[object]]


class PeriodicTask:
    """Runs ``job`` every ``interval`` seconds until :meth:`stop`.

    A job that raises is logged and the loop keeps going. The first run
    happens after one interval unless ``run_immediately`` is set.
    """

    def __init__(self, name: str, interval: float, job: Job, *, run_immediately: bool = False):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._job = job
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PeriodicTask":
        if self.running:
            return self
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)
        return self

    async def _loop(self) -> None:
        if self._run_immediately:
            await self._run_once()
        while True:
            await asyncio.sleep(self.interval)
            await self._run_once()

    async def _run_once(self) -> None:
        try:
            # stop() never interrupts a job that already started.
            await asyncio.shield(self._job())
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled job %s failed", self.name)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None


class DelayedTask:
    """One-shot job after ``delay`` seconds; cancelled by :meth:`stop` if still waiting."""

    def __init__(self, name: str, delay: float, job: Job):
        self.name = name
        self.delay = max(0.0, delay)
        self._job = job
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "DelayedTask":
        if not self.pending:
            self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        try:
            # stop() never interrupts a job that already started.
            await asyncio.shield(self._job())
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Delayed job %s failed", self.name)

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


__all__ = ["DelayedTask", "PeriodicTask"]
