"""Single-shot asyncio timer with explicit armed/disarmed state.

At most one pending callback exists per Timer: arming replaces whatever was
armed before.  Disarming cancels only the pending wait; a callback that has
already fired keeps running to completion.

Usage:
    timer = Timer("poll")
    timer.arm(5.0, self.poll)   # poll() in 5s
    timer.armed                 # True
    timer.due                   # loop time the callback fires at
    timer.disarm()
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class Timer:

    def __init__(self, name: str):
        self.name = name
        self.due: float | None = None
        self._pending: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def armed(self) -> bool:
        return self._pending is not None

    def arm(self, delay: float, callback):
        """Fire ``await callback()`` after *delay* seconds, replacing any armed callback."""
        self.disarm()
        loop = asyncio.get_running_loop()
        delay = max(delay, 0)
        self.due = loop.time() + delay
        self._pending = asyncio.create_task(self._wait(delay, callback))
        logger.debug("Timer %s armed (%.2fs)", self.name, delay)

    def disarm(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
            logger.debug("Timer %s disarmed", self.name)
        self.due = None

    async def _wait(self, delay: float, callback):
        await asyncio.sleep(delay)
        # Fired: from here on the callback is no longer "pending", so a
        # disarm() issued while it runs does not cancel it.
        self._pending = None
        self.due = None
        task = asyncio.create_task(self._fire(callback))
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _fire(self, callback):
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Timer %s callback failed", self.name)

    async def shutdown(self):
        """Disarm and cancel callbacks that are still running."""
        self.disarm()
        for task in list(self._running):
            task.cancel()
        for task in list(self._running):
            try:
                await task
            except (asyncio.CancelledError, Exception):
                pass
