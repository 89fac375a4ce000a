"""
Scheduling primitives for the synchronizer: a one-shot suppression flag and
a debouncer of cancellable asyncio tasks keyed by field.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, Hashable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class FlagState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


class SuppressionFlag:
    """
    Two-state one-shot flag.

    ``arm`` moves to ARMED; ``consume`` reports whether the flag was armed and
    always leaves it IDLE, so one arm grants exactly one suppressed cycle.
    """

    def __init__(self):
        self.state = FlagState.IDLE

    def arm(self) -> None:
        self.state = FlagState.ARMED

    def consume(self) -> bool:
        was_armed = self.state is FlagState.ARMED
        self.state = FlagState.IDLE
        return was_armed

    def reset(self) -> None:
        self.state = FlagState.IDLE

    @property
    def armed(self) -> bool:
        return self.state is FlagState.ARMED


class Debouncer:
    """
    Runs an action after a quiet period, one pending action per key.

    Scheduling a key cancels its previous task before the new one is created,
    so only the most recently scheduled action for a key can run. Without a
    running event loop the action is held back until ``flush`` is called
    from inside one.
    """

    def __init__(self):
        self._tasks: Dict[Hashable, asyncio.Task] = {}
        self._deferred: Dict[Hashable, Tuple[float, Callable[[], Awaitable[None]]]] = {}

    def schedule(
        self, key: Hashable, delay: float, action: Callable[[], Awaitable[None]]
    ) -> Optional[asyncio.Task]:
        self.cancel(key)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, deferring %r", key)
            self._deferred[key] = (delay, action)
            return None
        task = loop.create_task(self._run(key, delay, action))
        self._tasks[key] = task
        return task

    def flush(self) -> None:
        """Start every deferred action; call from the running loop."""
        deferred, self._deferred = self._deferred, {}
        for key, (delay, action) in deferred.items():
            self.schedule(key, delay, action)

    async def _run(self, key: Hashable, delay: float, action: Callable[[], Awaitable[None]]) -> None:
        try:
            await asyncio.sleep(delay)
            await action()
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]

    def cancel(self, key: Hashable) -> None:
        self._deferred.pop(key, None)
        task = self._tasks.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    def cancel_all(self) -> None:
        self._deferred.clear()
        for key in list(self._tasks):
            self.cancel(key)

    def pending(self, key: Hashable) -> bool:
        if key in self._deferred:
            return True
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def tasks(self) -> List[asyncio.Task]:
        return [t for t in self._tasks.values() if not t.done()]

    async def join(self) -> None:
        """Wait until no task is pending, including tasks scheduled meanwhile."""
        while True:
            pending = self.tasks()
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
