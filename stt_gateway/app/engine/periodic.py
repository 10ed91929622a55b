"""Cancellable periodic task bound to a session lifetime."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

_LOGGER = logging.getLogger(__name__)


class PeriodicTask:
    """Runs an async callback on a fixed cadence until stopped.

    Stopping is cooperative: an in-flight callback runs to completion and no
    further ticks start. ``stop()`` may be called any number of times.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[None]],
        interval_s: float,
        *,
        name: str = "periodic-task",
    ) -> None:
        self._callback = callback
        self._interval_s = interval_s
        self._name = name
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self.tick_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedules the loop once; later calls are ignored."""
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.create_task(self._run(), name=self._name)
        _LOGGER.debug("Periodic task started.", extra={"task_name": self._name, "interval_s": self._interval_s})

    async def stop(self) -> None:
        """Signals the loop to exit and waits for the current tick to finish."""
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _LOGGER.debug("Periodic task stopped.", extra={"task_name": self._name, "ticks": self.tick_count})

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_s)
            except asyncio.TimeoutError:
                pass
            if self._stop_event.is_set():
                return
            self.tick_count += 1
            try:
                await self._callback()
            except Exception:
                _LOGGER.exception("Periodic task callback failed.", extra={"task_name": self._name})
