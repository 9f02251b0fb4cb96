"""
Deferred work for the game loop.

Tasks are queued with a delay and run when the owner polls the scheduler,
normally once per frame. Nothing runs on another thread.
"""
import heapq
import itertools
import time
from typing import Callable, List


class ScheduledTask:
    """Handle for a queued callback. Cancelling it guarantees it never runs."""

    def __init__(self, due_at: float, callback: Callable[[], None], name: str = ""):
        self.due_at = due_at
        self.callback = callback
        self.name = name or getattr(callback, "__name__", "task")
        self.cancelled = False
        self.done = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.done)

    def __repr__(self):
        return f"ScheduledTask(name={self.name!r}, due_at={self.due_at}, active={self.active})"


class Scheduler:
    """
    Single-threaded scheduler driven by run_pending().

    Args:
        clock: Monotonic time source in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._queue: List = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None], name: str = "") -> ScheduledTask:
        """Queue callback to run once delay seconds have passed."""
        return self.call_at(self.clock() + max(0.0, delay), callback, name)

    def call_at(self, due_at: float, callback: Callable[[], None], name: str = "") -> ScheduledTask:
        """Queue callback to run once the clock reaches due_at."""
        task = ScheduledTask(due_at, callback, name)
        heapq.heappush(self._queue, (task.due_at, next(self._counter), task))
        return task

    def run_pending(self) -> int:
        """
        Run every task that is due, in due order.

        Tasks queued by a running callback are picked up in the same call if
        they are already due.

        Returns:
            Number of callbacks that ran
        """
        ran = 0
        while self._queue:
            due_at, _, task = self._queue[0]
            if task.cancelled:
                heapq.heappop(self._queue)
                continue
            if due_at > self.clock():
                break
            heapq.heappop(self._queue)
            task.done = True
            task.callback()
            ran += 1
        return ran

    def cancel_all(self) -> None:
        for _, _, task in self._queue:
            task.cancel()
        self._queue.clear()

    @property
    def pending(self) -> int:
        return sum(1 for _, _, task in self._queue if task.active)
