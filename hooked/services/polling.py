"""
Cancellable periodic task used by the notification poller and chat refresh
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

Callback = Callable[[], Union[Any, Awaitable[Any]]]


class PeriodicTask:
    """Runs ``callback`` now and then every ``interval`` seconds until stopped.

    While ``paused`` the schedule keeps going but ticks are skipped, which is
    how a hidden view stops polling without losing its timer. ``stop()``
    cancels the schedule; a tick already running in a worker thread finishes
    on its own.
    """

    def __init__(self, interval: float, callback: Callback, name: str = "periodic"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self.name = name
        self.paused = False
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule on the running event loop"""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    async def run_once(self) -> Any:
        if inspect.iscoroutinefunction(self.callback):
            return await self.callback()
        return await asyncio.to_thread(self.callback)

    async def _loop(self) -> None:
        while True:
            if not self.paused:
                try:
                    await self.run_once()
                    self.ticks += 1
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception(f"{self.name} tick failed")
            await asyncio.sleep(self.interval)
