"""
Tick-evaluated timers for delayed actions such as stopping a sound or
giving up on a connection attempt.
"""

import time
from typing import Callable, Optional


class Deadline:
    """A cancellable point in time, checked once per tick"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._due: Optional[float] = None

    def start(self, duration: float):
        self._due = self.clock() + duration

    def cancel(self):
        self._due = None

    @property
    def active(self) -> bool:
        return self._due is not None

    def remaining(self) -> float:
        if self._due is None:
            return 0.0
        return max(0.0, self._due - self.clock())

    def expired(self) -> bool:
        """True exactly once, on the first check at or after the due time"""
        if self._due is None or self.clock() < self._due:
            return False
        self._due = None
        return True
