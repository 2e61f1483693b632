"""Schedulers used for deferred dispatch.

A scheduler is any object with ``call_later(delay_seconds, fn)``. The engine
hands it one callback per dispatch_later()/dispatch() and never waits on it.

Usage with asyncio (the default):

    async def main():
        engine = Engine()
        engine.dispatch(("increment",))   # runs on the next loop iteration
        await asyncio.sleep(0)

Usage without an event loop:

    clock = ManualScheduler()
    engine = Engine(scheduler=clock)
    engine.dispatch_later(("tick",), 50)
    clock.advance(50)                     # ("tick",) runs here
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Any, Callable, Optional, Protocol


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], Any]) -> Any: ...


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop."""

    __slots__ = ("_loop",)

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, fn: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise RuntimeError(
                    "Deferred dispatch needs a running asyncio loop; "
                    "pass Engine(scheduler=...) to dispatch without one"
                ) from None
        return loop.call_later(delay, fn)


class ManualScheduler:
    """Deterministic cooperative scheduler driven by a virtual clock.

    Nothing runs until run_pending() or advance() is called. Callbacks due at
    the same time run in the order they were scheduled.
    """

    def __init__(self) -> None:
        self._now_ms = 0.0
        self._queue: list[tuple[float, int, Callable[[], Any]]] = []
        self._seq = itertools.count()

    @property
    def now(self) -> float:
        """Virtual time in seconds."""
        return self._now_ms / 1000.0

    def call_later(self, delay: float, fn: Callable[[], Any]) -> None:
        # Milliseconds, rounded, so advance(99) + advance(1) reaches a 100ms timer.
        due = round(self._now_ms + max(delay, 0.0) * 1000.0, 6)
        heapq.heappush(self._queue, (due, next(self._seq), fn))

    def pending_count(self) -> int:
        return len(self._queue)

    def run_pending(self) -> int:
        """Run every callback that is due, including ones scheduled meanwhile.

        Returns how many callbacks ran.
        """
        ran = 0
        while self._queue and self._queue[0][0] <= self._now_ms:
            _, _, fn = heapq.heappop(self._queue)
            fn()
            ran += 1
        return ran

    def advance(self, ms: float) -> int:
        """Move the clock forward by ms milliseconds and run what became due."""
        if ms < 0:
            raise ValueError("Cannot move the clock backwards")
        self._now_ms = round(self._now_ms + ms, 6)
        return self.run_pending()
