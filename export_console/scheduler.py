import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PollScheduler:
    """
    A single cancellable delayed call.

    At most one timer is armed at a time: scheduling again cancels the armed
    timer first. A timer that has already fired and is running its callback
    is never interrupted, so a callback may safely schedule its successor.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._armed = False

    @property
    def pending(self) -> Optional[asyncio.Task]:
        """The armed timer task, or None when nothing is waiting to fire."""
        return self._task if self._armed else None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, delay: float, callback: Callable[[], Awaitable[object]]) -> asyncio.Task:
        """
        Arm a timer that awaits ``callback()`` after ``delay`` seconds.

        Args:
            delay: Seconds to wait before firing
            callback: Coroutine function to run when the timer fires

        Returns:
            asyncio.Task: The task backing the new timer
        """
        self.cancel()
        self._armed = True
        self._task = asyncio.ensure_future(self._fire(delay, callback))
        logger.debug(f"Scheduled poll in {delay}s")
        return self._task

    def cancel(self) -> bool:
        """
        Disarm the pending timer.

        Returns:
            bool: True if an armed timer was cancelled
        """
        if not self._armed or self._task is None:
            return False
        self._armed = False
        self._task.cancel()
        logger.debug("Cancelled pending poll")
        return True

    async def _fire(self, delay: float, callback: Callable[[], Awaitable[object]]):
        await self._sleep(delay)
        if asyncio.current_task() is self._task:
            self._armed = False
        await callback()

    async def join(self) -> None:
        """Wait until no timer is armed or firing."""
        while self.active:
            await asyncio.wait({self._task})
