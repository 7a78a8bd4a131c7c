"""Single-timer refresh scheduler for quote sessions."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class RefreshScheduler:
    """Fires a refresh callback after a fixed interval, one timer at a time.

    `schedule()` replaces any pending timer. While the callback is running
    no new timer can be armed; the scheduler re-arms itself when the
    callback returns unless it was paused or stopped meanwhile.

    Example:
        scheduler = RefreshScheduler(10, refresh_quote)
        scheduler.schedule()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        interval: float,
        on_fire: Callable[[], Awaitable[None]],
        name: str = "quote-refresh",
    ):
        self.interval = interval
        self.on_fire = on_fire
        self.name = name
        self.state = SchedulerState.IDLE
        self.fire_count = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_live(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> bool:
        """Arm a fresh timer, replacing a pending one.

        Returns:
            True if a timer was armed
        """
        if self.state in (SchedulerState.PAUSED, SchedulerState.STOPPED, SchedulerState.RUNNING):
            return False
        if self.interval <= 0:
            return False
        self._cancel_pending()
        self._task = asyncio.create_task(self._run(), name=self.name)
        self.state = SchedulerState.SCHEDULED
        return True

    def disarm(self) -> None:
        """Drop a pending timer without firing it."""
        if self.state == SchedulerState.SCHEDULED:
            self._cancel_pending()
            self.state = SchedulerState.IDLE

    def pause(self) -> None:
        """Stop arming timers; an in-flight refresh is left to finish."""
        if self.state == SchedulerState.STOPPED:
            return
        if self.state == SchedulerState.SCHEDULED:
            self._cancel_pending()
        self.state = SchedulerState.PAUSED
        logger.debug(f"{self.name} paused")

    def resume(self) -> None:
        if self.state != SchedulerState.PAUSED:
            return
        self.state = SchedulerState.IDLE
        if self.is_live:
            # The refresh that was running when paused re-arms on completion
            self.state = SchedulerState.RUNNING
            return
        self.schedule()
        logger.debug(f"{self.name} resumed")

    async def stop(self) -> None:
        """Cancel the timer and any refresh it is running."""
        self.state = SchedulerState.STOPPED
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    def _cancel_pending(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        await asyncio.sleep(self.interval)
        if self.state != SchedulerState.SCHEDULED:
            return

        self.state = SchedulerState.RUNNING
        self.fire_count += 1
        try:
            await self.on_fire()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"{self.name} callback failed: {type(e).__name__}: {e}")
        finally:
            self._task = None
            if self.state == SchedulerState.RUNNING:
                self.state = SchedulerState.IDLE

        self.schedule()
