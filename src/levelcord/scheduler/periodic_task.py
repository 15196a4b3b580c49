"""Reusable asyncio runner for fixed-interval background work.

Wraps a coroutine function in a long-lived task that calls it, sleeps for
the interval, and repeats until shut down. Failures of a single run are
logged and never stop the loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from levelcord.util.logger import get_logger

logger = get_logger("periodic_task")


class PeriodicTask:
    """
    Fixed-interval background task with explicit start/shutdown.

    Args:
        name: Human-readable name for logging (e.g., "xp flush").
        run_once: Async callable invoked once per tick.
        interval: Seconds to sleep between runs.
    """

    def __init__(
        self,
        name: str,
        run_once: Callable[[], Awaitable[Any]],
        interval: float,
    ) -> None:
        self._name = name
        self._run_once = run_once
        self._interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self) -> None:
        """Infinite loop: run, sleep, repeat."""
        logger.info("[%s] Starting periodic task (interval=%.1fs)", self._name, self._interval)
        try:
            while True:
                try:
                    await self._run_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[%s] Unexpected error during run: %s", self._name, exc)
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            logger.info("[%s] Periodic task cancelled", self._name)
            raise

    def start(self) -> None:
        """Start the background task if not already running."""
        if self.running:
            logger.warning("[%s] Task already running", self._name)
            return
        self._task = asyncio.create_task(self._run_loop(), name=self._name)

    async def shutdown(self) -> None:
        """Cancel the task and wait for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        logger.info("[%s] Periodic task shutdown complete", self._name)
