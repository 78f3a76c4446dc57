"""
kernel/scheduler.py - Single-Loop Callback Scheduler

One ordered queue for every periodic and delayed callback a session owns:
the tick, the breath toggle, short transient timers. Callbacks never
overlap; each runs to completion before the next is popped.

The clock is virtual. ``advance(seconds)`` moves it forward and fires what
came due, in deadline order, ties broken by insertion order. ``run_realtime``
paces the same queue against wall-clock time.
"""

import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


@dataclass(order=True)
class _Entry:
    when: float
    seq: int
    handle: "TimerHandle" = field(compare=False)


@dataclass
class TimerHandle:
    """Returned by every ``call_*``; pass to ``cancel`` to drop the timer."""
    callback: Callback
    interval: Optional[float] = None
    name: str = ""
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Heap-ordered callback queue on a virtual clock."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[_Entry] = []
        self._seq = itertools.count()
        self._closed = False

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for e in self._queue if not e.handle.cancelled)

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def _push(self, when: float, handle: TimerHandle) -> TimerHandle:
        if self._closed:
            handle.cancelled = True
            return handle
        heapq.heappush(self._queue, _Entry(when, next(self._seq), handle))
        return handle

    def call_at(self, when: float, callback: Callback, name: str = "") -> TimerHandle:
        return self._push(when, TimerHandle(callback, name=name))

    def call_later(self, delay: float, callback: Callback, name: str = "") -> TimerHandle:
        return self.call_at(self._now + delay, callback, name)

    def call_every(self, interval: float, callback: Callback, name: str = "") -> TimerHandle:
        """Fire every ``interval`` seconds, first at now + interval."""
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        return self._push(self._now + interval, TimerHandle(callback, interval, name))

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()

    def clear(self) -> None:
        """Drop every pending callback and refuse new ones."""
        for entry in self._queue:
            entry.handle.cancel()
        self._queue.clear()
        self._closed = True

    # -------------------------------------------------------------------------
    # Driving
    # -------------------------------------------------------------------------

    def next_deadline(self) -> Optional[float]:
        while self._queue and self._queue[0].handle.cancelled:
            heapq.heappop(self._queue)
        return self._queue[0].when if self._queue else None

    def run_until(self, until: float) -> int:
        """
        Fire every callback due at or before ``until``.

        Returns:
            Number of callbacks fired
        """
        fired = 0
        while True:
            when = self.next_deadline()
            if when is None or when > until:
                break
            entry = heapq.heappop(self._queue)
            self._now = max(self._now, entry.when)
            handle = entry.handle
            if handle.interval is not None:
                self._push(entry.when + handle.interval, handle)
            handle.callback()
            fired += 1
        if not self._closed:
            self._now = max(self._now, until)
        return fired

    def advance(self, seconds: float) -> int:
        return self.run_until(self._now + seconds)

    def run_realtime(self, duration: float,
                     sleep: Callable[[float], None] = time.sleep,
                     clock: Callable[[], float] = time.monotonic) -> int:
        """Drive the queue against the wall clock for ``duration`` seconds."""
        start_wall = clock()
        start_virtual = self._now
        fired = 0
        while not self._closed:
            elapsed = clock() - start_wall
            if elapsed >= duration:
                break
            fired += self.run_until(start_virtual + elapsed)
            nxt = self.next_deadline()
            if nxt is None:
                break
            sleep(max(0.0, min(nxt - self._now, duration - elapsed)))
        logger.debug("run_realtime fired %d callbacks", fired)
        return fired
