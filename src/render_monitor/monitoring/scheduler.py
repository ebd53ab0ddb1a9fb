"""
PeriodicScheduler - Runs periodic async tasks.

Each task gets its own asyncio loop that waits for its interval, runs one
tick, and repeats until stopped. A failing tick is logged and the loop
keeps going.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodicTask:
    """A named coroutine function to run every interval_seconds."""

    name: str
    interval_seconds: float
    tick: Callable[[], Awaitable[None]]


class PeriodicScheduler:
    """
    Drives independent periodic tasks on the running event loop.

    Ticks of one task never overlap: the next wait starts after the
    previous tick returns. Different tasks are independent, so a slow
    tick only delays its own task.

    Usage:
        scheduler = PeriodicScheduler(stop_timeout=5.0)
        await scheduler.start([
            PeriodicTask("health_check", 30, service.perform_health_checks),
        ])
        # ... runs ...
        await scheduler.stop()
    """

    def __init__(self, stop_timeout: float = 5.0) -> None:
        """
        Initialize the scheduler.

        Args:
            stop_timeout: Seconds stop() waits for an in-flight tick to
                finish before cancelling it
        """
        self._stop_timeout = stop_timeout
        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        """Whether the scheduler is running."""
        return self._running

    @property
    def task_names(self) -> List[str]:
        return [t.get_name() for t in self._tasks]

    async def start(self, tasks: List[PeriodicTask]) -> None:
        """Start one loop per task. No-op if already running."""
        if self._running:
            return

        self._running = True
        self._stop_event.clear()

        for periodic in tasks:
            task = asyncio.create_task(
                self._run_loop(periodic),
                name=periodic.name,
            )
            self._tasks.append(task)

    async def stop(self) -> None:
        """
        Stop all loops.

        Loops waiting for their next tick exit immediately. A tick that is
        already running gets stop_timeout seconds to finish, then it is
        cancelled. No tick starts after this returns.
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        if self._tasks:
            _, pending = await asyncio.wait(
                self._tasks, timeout=max(self._stop_timeout, 0.0)
            )
            for task in pending:
                logger.warning(f"Cancelling {task.get_name()}: tick still running after stop timeout")
                task.cancel()

            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()

    async def _run_loop(self, periodic: PeriodicTask) -> None:
        """Wait, tick, repeat until stopped."""
        # Negative intervals fire immediately and repeatedly
        interval = max(periodic.interval_seconds, 0.0)

        while self._running:
            try:
                # Wait for interval or stop
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=interval,
                    )
                    break  # Stop requested
                except asyncio.TimeoutError:
                    pass  # Continue with tick

                if not self._running:
                    break

                await periodic.tick()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in {periodic.name} tick: {e}")
