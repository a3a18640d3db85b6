"""
Periodic Background Task

Runs an async action on a fixed interval in its own asyncio task, with an
explicit stop handle.

Lifecycle:
    task = PeriodicTask("cache-warmer", warmer.warm_cache, interval=1800)
    task.start()        # schedules the loop on the running event loop
    ...
    await task.stop()   # graceful: waits for the current pass, then cancels
    await task.stop()   # no-op

Ticks never overlap: the next wait starts only after the current action
returns. A failing action is logged and the loop keeps its cadence.

Author: System Architect
Date: 2025-12-13
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from ethosview.core.logging.logger import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """
    Fixed-interval async loop with flag-based graceful shutdown.

    Args:
        name: Name used in log entries
        action: Coroutine function run once per tick
        interval: Seconds between the end of one run and the start of the next
        run_immediately: Run once right after start() instead of waiting a full interval
        shutdown_timeout: Seconds stop() waits for an in-flight run before cancelling it
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        interval: float,
        run_immediately: bool = True,
        shutdown_timeout: float = 5.0,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self.name = name
        self._action = action
        self._interval = interval
        self._run_immediately = run_immediately
        self._shutdown_timeout = shutdown_timeout
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """True while the loop task exists and has not finished."""
        return self._task is not None and not self._task.done()

    @property
    def interval(self) -> float:
        return self._interval

    def start(self) -> None:
        """
        Schedule the loop on the running event loop.

        Calling start() on a running task is a no-op.
        """
        if self.is_running:
            logger.warning("Periodic task already running", stage="TASK.START", task=self.name)
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=self.name)

        logger.info(
            "Periodic task started",
            stage="TASK.START",
            task=self.name,
            interval_seconds=self._interval,
        )

    async def stop(self) -> None:
        """
        Stop the loop and wait for it to finish. Safe to call multiple times.
        """
        task, self._task = self._task, None
        self._stop_event.set()

        if task is None:
            return

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Periodic task shutdown timeout, cancelling",
                stage="TASK.STOP",
                task=self.name,
                timeout_seconds=self._shutdown_timeout,
            )
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("Periodic task stopped", stage="TASK.STOP", task=self.name)

    async def run_once(self) -> None:
        """Run the action a single time, logging (not raising) failures."""
        try:
            await self._action()
        except Exception as e:
            logger.error(
                "Periodic task run failed",
                stage="TASK.RUN",
                task=self.name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    async def _run(self) -> None:
        run_now = self._run_immediately

        while not self._stop_event.is_set():
            if run_now:
                await self.run_once()
            run_now = True

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue
