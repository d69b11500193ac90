from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic seconds source for the UI shell."""

    def now(self) -> float: ...


class RealClock:
    def now(self) -> float:
        return time.monotonic()


class PauseTimer:
    """Blank pause between an answer and the next stimulus.

    The session core never waits; the shell arms this timer when a state
    enters the interstitial phase and advances the state once it is due.
    """

    def __init__(self, clock: Clock, duration_s: float) -> None:
        if duration_s < 0.0:
            raise ValueError("duration_s must be >= 0")
        self._clock = clock
        self._duration_s = float(duration_s)
        self._started_at: float | None = None

    @property
    def armed(self) -> bool:
        return self._started_at is not None

    def arm(self) -> None:
        if self._started_at is None:
            self._started_at = self._clock.now()

    def reset(self) -> None:
        self._started_at = None

    def remaining_s(self) -> float:
        if self._started_at is None:
            return 0.0
        # Small epsilon so float drift in the clock never holds a pause an extra frame.
        left = self._duration_s - (self._clock.now() - self._started_at)
        return 0.0 if left <= 1e-9 else left

    def due(self) -> bool:
        return self._started_at is not None and self.remaining_s() == 0.0
