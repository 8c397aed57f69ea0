"""Sliding-window admission control for external calls."""
import time
from collections import deque
from typing import Callable, Deque


class RateLimiter:
    """Admit at most ``max_requests`` calls per trailing ``window`` seconds.

    Callers check :meth:`can_admit` before a call and :meth:`record` each call
    they make. Not thread-safe; all calls come from the single session flow.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be positive")
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._timestamps: Deque[float] = deque()

    def _in_window(self, now: float) -> list[float]:
        cutoff = now - self.window
        return [stamp for stamp in self._timestamps if stamp > cutoff]

    def can_admit(self) -> bool:
        """Check whether a new call fits in the window."""
        return len(self._in_window(self._clock())) < self.max_requests

    def record(self) -> None:
        """Register a call made now."""
        now = self._clock()
        cutoff = now - self.window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()
        self._timestamps.append(now)

    def time_until_next_slot(self) -> float:
        """Seconds until the oldest call in the window ages out, 0 if admissible."""
        now = self._clock()
        recent = self._in_window(now)
        if len(recent) < self.max_requests:
            return 0.0
        # Over-recorded windows need more than one stamp to age out.
        freeing = recent[len(recent) - self.max_requests]
        return max(0.0, freeing + self.window - now)

    def __len__(self) -> int:
        return len(self._in_window(self._clock()))
