"""Periodic background maintenance jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

LOGGER = logging.getLogger(__name__)


class PeriodicJob:
    """Run a synchronous job every ``interval_seconds`` until stopped.

    Failures are logged and the loop keeps going.
    """

    def __init__(
        self, name: str, job: Callable[[], int], *, interval_seconds: float
    ) -> None:
        self._name = name
        self._job = job
        self._interval_seconds = max(0.01, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start background loop if not already running."""
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        """Stop background loop gracefully."""
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None

    def run_once(self) -> int:
        """Run the job now; returns its result or 0 when it failed."""
        try:
            result = self._job()
        except Exception:
            LOGGER.exception("Maintenance job failed: %s", self._name)
            return 0
        LOGGER.debug("Maintenance job %s finished", self._name, extra={"removed": result})
        return result

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._interval_seconds
                )
            except asyncio.TimeoutError:
                await asyncio.to_thread(self.run_once)
