"""
Fixed-interval scheduling of cleanup passes
"""

import threading
import time
from typing import Callable, Optional

import structlog

from pod_janitor.config import CLEANUP_INTERVAL_SECONDS

logger = structlog.get_logger(__name__)


class Clock:
    """Time source used by the scheduler"""

    def monotonic(self) -> float:
        raise NotImplementedError

    def sleep(self, seconds: float, interrupt: Optional[threading.Event] = None) -> None:
        """Wait for ``seconds``, returning early once ``interrupt`` is set"""
        raise NotImplementedError


class SystemClock(Clock):
    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, interrupt: Optional[threading.Event] = None) -> None:
        if interrupt is not None:
            interrupt.wait(seconds)
        else:
            time.sleep(seconds)


class Scheduler:
    """Calls ``task`` once every ``interval_seconds``, like a ticker.

    The first call happens one interval after ``run`` starts. A task that
    overruns its interval makes the scheduler drop the missed ticks rather
    than queue them, so calls never overlap. Exceptions raised by the task
    are logged and the loop carries on.
    """

    def __init__(self, task: Callable[[], object],
                 interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
                 clock: Optional[Clock] = None):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.task = task
        self.interval = interval_seconds
        self.clock = clock if clock is not None else SystemClock()
        self._stopped = threading.Event()

    def stop(self) -> None:
        self._stopped.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Run until stopped or ``max_ticks`` calls were made; returns the tick count"""
        ticks = 0
        next_tick = self.clock.monotonic() + self.interval

        while not self.stopped and (max_ticks is None or ticks < max_ticks):
            delay = next_tick - self.clock.monotonic()
            if delay > 0:
                self.clock.sleep(delay, self._stopped)
            if self.stopped:
                break

            ticks += 1
            try:
                self.task()
            except Exception:
                logger.exception("Cleanup pass raised, continuing with next tick", tick=ticks)

            next_tick += self.interval
            now = self.clock.monotonic()
            if now > next_tick:
                missed = int((now - next_tick) // self.interval) + 1
                next_tick += missed * self.interval
                logger.warning("Cleanup pass overran its interval, dropping ticks",
                               missed_ticks=missed, interval_seconds=self.interval)

        return ticks
