"""Explicitly owned periodic background tasks."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class PeriodicTask:
    """Runs a synchronous action every ``interval_seconds`` on the event loop."""

    name: str
    interval_seconds: float
    action: Callable[[], object]
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self.running:
            logger.warning("Periodic task %s is already running", self.name)
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info("Started %s (interval=%ss)", self.name, self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped %s", self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.action()
            except Exception:
                logger.exception("%s cycle failed", self.name)
