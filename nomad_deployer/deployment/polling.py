"""
Poll-interval helpers.

Every wait in a run is a plain loop: fetch fresh state, test it, sleep a
fixed interval. ``PollTimer`` owns the interval and the optional deadline so
the loops themselves stay readable.
"""

import time
from typing import Callable, Optional


class PollTimer:
    """Fixed-interval poll cadence with an optional deadline."""

    def __init__(
        self,
        interval: float,
        timeout: Optional[float] = None,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            interval: Seconds to sleep between polls
            timeout: Seconds from now until the deadline, None for no deadline
            sleep: Blocking sleep function
            clock: Monotonic clock in seconds
        """
        self.interval = interval
        self.timeout = timeout
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic
        self.started_at = self._clock()

    @property
    def deadline(self) -> Optional[float]:
        if self.timeout is None:
            return None
        return self.started_at + self.timeout

    def expired(self) -> bool:
        deadline = self.deadline
        return deadline is not None and self._clock() > deadline

    def remaining(self) -> Optional[float]:
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - self._clock())

    def wait(self) -> None:
        """Sleep one interval before the next poll."""
        self._sleep(self.interval)
