"""
Elapsed-time tracking for a game session.

A GameTimer belongs to exactly one owner. It measures wall-clock time with
paused intervals excluded, notifies observers once per second through the
scheduler, and stops itself when the configured cap is reached.
"""
import logging
import math
import time
from typing import Callable, List, Optional

from config import MAX_TIMER_DURATION, TICK_INTERVAL
from scheduler import ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


def format_time(seconds) -> str:
    """Format seconds as MM:SS. Invalid or negative input gives 00:00."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds < 0:
        return "00:00"
    seconds = int(seconds)
    minutes, seconds_part = divmod(seconds, 60)
    return f"{minutes:02d}:{seconds_part:02d}"


def parse_time_to_seconds(time_string: str) -> int:
    """Parse MM:SS back into seconds; anything unparseable is 0."""
    parts = str(time_string).split(":")
    if len(parts) != 2:
        return 0
    try:
        minutes = int(parts[0])
    except ValueError:
        minutes = 0
    try:
        seconds = int(parts[1])
    except ValueError:
        seconds = 0
    return minutes * 60 + seconds


def readable_duration(seconds: int) -> str:
    """Human-readable duration, e.g. '45 seconds', '2 minutes', '2m 5s'."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds} second{'' if seconds == 1 else 's'}"
    minutes, remaining = divmod(seconds, 60)
    if remaining == 0:
        return f"{minutes} minute{'' if minutes == 1 else 's'}"
    return f"{minutes}m {remaining}s"


class GameTimer:
    """
    Timer for a single game session.

    Args:
        scheduler: Scheduler that drives the once-per-second tick
        clock: Monotonic time source in seconds (defaults to the scheduler's)
        max_duration: Elapsed seconds at which the timer stops itself
        tick_interval: Seconds between observer notifications
    """

    def __init__(self, scheduler: Scheduler, clock: Optional[Callable[[], float]] = None,
                 max_duration: int = MAX_TIMER_DURATION, tick_interval: float = TICK_INTERVAL):
        self.scheduler = scheduler
        self.clock = clock or scheduler.clock
        self.max_duration = max_duration
        self.tick_interval = tick_interval

        self.session_id = None
        self.is_running = False
        self.is_paused = False
        self._start_time = 0.0
        self._offset = 0
        self._paused_total = 0.0
        self._pause_started = None
        self._final_elapsed = 0
        self._tick_task: Optional[ScheduledTask] = None
        self._observers: List[Callable[[int], None]] = []

    def start(self, session_id, offset: int = 0) -> None:
        """
        Start timing a session.

        Args:
            session_id: Identifier of the session being timed
            offset: Seconds already played, for a resumed session
        """
        if self.is_running:
            return
        self.session_id = session_id
        self.is_running = True
        self.is_paused = False
        self._start_time = self.clock()
        self._offset = max(0, int(offset))
        self._paused_total = 0.0
        self._pause_started = None
        self._final_elapsed = 0
        self._schedule_tick()
        logger.debug("Timer started for session %s", session_id)

    def pause(self) -> None:
        if not self.is_running or self.is_paused:
            return
        self.is_paused = True
        self._pause_started = self.clock()

    def resume(self) -> None:
        if not self.is_running or not self.is_paused:
            return
        self._paused_total += self.clock() - self._pause_started
        self._pause_started = None
        self.is_paused = False

    def stop(self) -> int:
        """
        Stop the timer and return the elapsed whole seconds.

        The pending tick is cancelled, observers are dropped and the session
        is forgotten. Stopping an already stopped timer returns the value
        captured by the last stop.
        """
        if not self.is_running:
            return self._final_elapsed
        self._final_elapsed = self._current_elapsed()
        self._cancel_tick()
        logger.debug("Timer stopped for session %s at %ss", self.session_id, self._final_elapsed)
        self.is_running = False
        self.is_paused = False
        self._pause_started = None
        self.session_id = None
        self._observers = []
        return self._final_elapsed

    def elapsed_seconds(self) -> int:
        if not self.is_running:
            return self._final_elapsed
        return self._current_elapsed()

    def remaining_seconds(self) -> int:
        return max(0, self.max_duration - self.elapsed_seconds())

    def formatted_time(self) -> str:
        return format_time(self.elapsed_seconds())

    def subscribe(self, callback: Callable[[int], None]) -> Callable[[], None]:
        """
        Register an observer for per-second updates.

        Returns:
            A function that removes this observer again
        """
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def on_limit(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call callback once when the timer reaches its cap."""
        def check(elapsed):
            if elapsed >= self.max_duration:
                callback()

        return self.subscribe(check)

    def _current_elapsed(self) -> int:
        now = self._pause_started if self.is_paused else self.clock()
        elapsed = math.floor(now - self._start_time - self._paused_total) + self._offset
        return min(max(0, elapsed), self.max_duration)

    def _schedule_tick(self, previous_due: Optional[float] = None):
        now = self.clock()
        due_at = (now if previous_due is None else previous_due) + self.tick_interval
        # ticks stay on the start-time grid; a late tick does not push the next one back
        while due_at <= now:
            due_at += self.tick_interval
        self._tick_task = self.scheduler.call_at(due_at, self._tick, name="timer-tick")

    def _cancel_tick(self):
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    def _tick(self):
        due_at = self._tick_task.due_at if self._tick_task is not None else None
        self._tick_task = None
        if not self.is_running:
            return
        if self.is_paused:
            self._schedule_tick(due_at)
            return

        elapsed = self._current_elapsed()
        for callback in list(self._observers):
            callback(elapsed)

        if not self.is_running:
            # an observer stopped the timer
            return
        if elapsed >= self.max_duration:
            logger.info("Session %s reached the %ss time limit", self.session_id, self.max_duration)
            self.stop()
        else:
            self._schedule_tick(due_at)
