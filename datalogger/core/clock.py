import time
from typing import Callable, Optional

Clock = Callable[[], float]


class ElapsedClock:
    """Elapsed time since a per-session base, read from a monotonic clock."""
    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self.base = clock()
        self._last_lap: Optional[float] = None

    def now(self) -> float:
        return self._clock()

    def elapsed(self, at: Optional[float] = None) -> float:
        """Seconds since the base. `at` is a reading previously taken from now()."""
        if at is None:
            at = self._clock()
        return at - self.base

    def lap_ms(self, at: Optional[float] = None) -> float:
        """Milliseconds since the previous lap, or since the base on the first call."""
        if at is None:
            at = self._clock()
        previous = self.base if self._last_lap is None else self._last_lap
        self._last_lap = at
        return (at - previous) * 1000.0


class IntervalTimer:
    """
    Gate for loops that should only log every `interval_ms` milliseconds,
    regardless of how fast the loop itself spins.
    """
    def __init__(self, interval_ms: float, clock: Clock = time.monotonic):
        if interval_ms < 0:
            raise ValueError("interval_ms must not be negative")
        self.interval_ms = interval_ms
        self._clock = clock
        self._start = clock()

    def reset(self):
        self._start = self._clock()

    def elapsed_ms(self) -> float:
        return (self._clock() - self._start) * 1000.0

    def ready(self) -> bool:
        if self.elapsed_ms() >= self.interval_ms:
            self.reset()
            return True
        return False
