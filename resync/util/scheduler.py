"""
Schedulers - Next-Tick and Delayed Callbacks
============================================

The subscription lifecycle defers work in two ways: completing a bulk request
on the next tick, and delaying document eviction after the last reference is
dropped. Both go through a Scheduler so the model can run on an asyncio event
loop in applications and on a deterministic manual clock in tests or
server-side batch jobs.
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple


class Scheduler(ABC):
    """Abstract source of deferred callbacks."""

    @abstractmethod
    def call_soon(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on the next tick."""
        pass

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` after ``delay`` seconds."""
        pass

    def ensure_ready(self) -> None:
        """Raise if callbacks cannot be scheduled right now."""
        pass


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by an asyncio event loop.

    When no loop is given, the running loop is looked up at call time, so a
    model can be constructed outside of any loop and used inside one.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as e:
            raise RuntimeError(
                "AsyncioScheduler needs a running event loop; pass "
                "scheduler=ManualScheduler() to use the model outside of one"
            ) from e

    def ensure_ready(self) -> None:
        self._get_loop()

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._get_loop().call_soon(callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self._get_loop().call_later(delay, callback)


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler driven by explicit clock advancement.

    Callbacks only run from ``advance()`` or ``run_pending()``, in due-time
    order; callbacks due at the same time run in scheduling order.

    Usage:
        scheduler = ManualScheduler()
        scheduler.call_later(1.0, on_timeout)
        scheduler.advance(0.5)  # nothing runs
        scheduler.advance(0.5)  # on_timeout runs
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._counter = itertools.count()

    def call_soon(self, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self.now, next(self._counter), callback))

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        heapq.heappush(
            self._queue, (self.now + max(delay, 0.0), next(self._counter), callback)
        )

    def run_pending(self) -> int:
        """Run everything due at the current time, including newly due work."""
        return self.advance(0.0)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, running callbacks as they come due.

        Returns:
            Number of callbacks run
        """
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            callback()
            ran += 1
        self.now = target
        return ran

    def __len__(self) -> int:
        return len(self._queue)
