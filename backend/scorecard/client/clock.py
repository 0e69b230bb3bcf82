"""Timers for the persistence bridge.

The bridge never calls ``asyncio.sleep`` or ``loop.call_later`` directly; it
asks a scheduler. Production code uses :class:`AsyncioScheduler`; tests drive
a :class:`VirtualScheduler` by hand so debounce and backoff behaviour can be
checked without waiting on a wall clock.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, List, Optional, Protocol, Set


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]": ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay, 0.0), callback)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        # Hold a reference so the task is not garbage collected mid-flight.
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


@dataclass(order=True)
class VirtualTimer:
    when: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Manually advanced clock.

    Timers only fire inside :meth:`advance`. Spawned tasks run on the real
    event loop and are given a chance to finish after every timer callback.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._timers: List[VirtualTimer] = []
        self._seq = itertools.count()
        self._tasks: Set[asyncio.Task] = set()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> VirtualTimer:
        timer = VirtualTimer(self._now + max(delay, 0.0), next(self._seq), callback)
        heapq.heappush(self._timers, timer)
        return timer

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> List[float]:
        """Fire times of timers that are still armed, earliest first."""
        return sorted(t.when for t in self._timers if not t.cancelled)

    async def settle(self, max_iterations: int = 100) -> None:
        """Yield to the loop until spawned tasks finish or stop making progress."""
        for _ in range(max_iterations):
            if not self._tasks:
                return
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        await self.settle()
        while self._timers:
            timer = self._timers[0]
            if timer.cancelled:
                heapq.heappop(self._timers)
                continue
            if timer.when > target:
                break
            heapq.heappop(self._timers)
            self._now = timer.when
            timer.callback()
            await self.settle()
        self._now = target
