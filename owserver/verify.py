"""
udi-owserver-pg3x NodeServer/Plugin for EISY/Polisy

(C) 2025

Delayed verification polls after a write.

The gateway is slow to apply writes, so a write is followed by value polls
some time later. Each poll is a cancellable timer, stopping the binding
cancels the ones that did not run yet.
"""

# std libraries
import threading
from typing import Callable, Iterable, List

# external libraries
from udi_interface import LOGGER


class VerificationSchedule:
    """Pending verification timers.

    Attributes:
        timer_factory: Called as ``timer_factory(delay, callback)`` and returns
            an object with ``start()`` and ``cancel()``. Defaults to
            threading.Timer.
    """

    def __init__(self, timer_factory: Callable = None):
        self.timer_factory = timer_factory or threading.Timer
        self._timers: List = []
        self._lock = threading.Lock()


    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._timers)


    def schedule(self, delays: Iterable[float], callback: Callable[[], None]) -> None:
        """Run the callback after each delay, delays add up from one to the next.

        Scheduling (1, 4) runs the callback 1 and 5 seconds from now.
        """
        offset = 0.0
        timers = []
        for delay in delays:
            offset += delay
            timers.append(self._create_timer(offset, callback))
        with self._lock:
            self._timers.extend(timers)
        for timer in timers:
            timer.start()


    def _create_timer(self, offset: float, callback: Callable[[], None]):
        holder = []

        def run():
            self._done(holder[0])
            try:
                callback()
            except Exception as ex:
                LOGGER.error(f"Verification poll failed: {ex}")

        holder.append(self.timer_factory(offset, run))
        return holder[0]


    def _done(self, timer) -> None:
        with self._lock:
            if timer in self._timers:
                self._timers.remove(timer)


    def cancel_all(self) -> None:
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        if timers:
            LOGGER.debug(f"Cancelled {len(timers)} pending verifications")
