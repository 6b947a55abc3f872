"""
Repeating asyncio timer with arm/disarm semantics.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from .logger import get_logger

logger = get_logger(__name__)


class RecurringTimer:
    """
    Runs an async callback every ``interval`` seconds while armed.

    ``disarm`` is synchronous with respect to the callback: once it returns,
    no callback is running and none will start. Disarming from inside the
    timer's own callback detaches the timer; the loop exits when that
    callback returns.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], Awaitable[None]]):
        """
        Initialize timer.

        Args:
            name: Task name, used in logs
            interval: Seconds between callbacks
            callback: Coroutine function to run on every tick
        """
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        """Start ticking. No-op if already armed."""
        if self.is_armed:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.debug("Timer armed", timer=self.name, interval=self.interval)

    async def disarm(self) -> None:
        """Stop ticking and wait for an in-flight callback to finish cancelling."""
        task = self._task
        self._task = None

        if task is None or task.done():
            return

        if task is asyncio.current_task():
            logger.debug("Timer disarmed from its own callback", timer=self.name)
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.debug("Timer disarmed", timer=self.name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)

            if self._task is not asyncio.current_task():
                break

            try:
                await self._callback()
            except Exception as e:
                logger.error("Error in timer callback", timer=self.name, error=str(e), exc_info=True)

            if self._task is not asyncio.current_task():
                break
