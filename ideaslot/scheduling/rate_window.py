"""
Sliding-window admission counter for one outbound API.

Timestamps older than the window are pruned lazily on every check; a new
call is admitted while ``len(timestamps) < max_requests``.
"""

from collections import deque
from typing import Callable, Deque


class RateWindow:
    """Rolling record of recent dispatch times.

    Args:
        window_seconds: Length of the sliding window.
        max_requests: Admissions allowed inside one window.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        clock: Callable[[], float],
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._timestamps: Deque[float] = deque()

    def prune(self) -> None:
        """Drop timestamps that have slid out of the window."""
        cutoff = self._clock() - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    @property
    def count(self) -> int:
        self.prune()
        return len(self._timestamps)

    def has_capacity(self) -> bool:
        return self.count < self.max_requests

    def record(self) -> float:
        """Append the current time as a dispatch and return it."""
        now = self._clock()
        self._timestamps.append(now)
        return now

    def seconds_until_capacity(self) -> float:
        """Time until enough entries leave the window to admit one call."""
        if self.has_capacity():
            return 0.0
        blocking = self._timestamps[len(self._timestamps) - self.max_requests]
        return max(0.0, blocking + self.window_seconds - self._clock())

    @property
    def remaining(self) -> int:
        return max(0, self.max_requests - self.count)
