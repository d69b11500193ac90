from __future__ import annotations

from dataclasses import dataclass

import pytest

from spectrum_sense.clock import PauseTimer, RealClock


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


def test_pause_timer_waits_for_its_duration() -> None:
    clock = FakeClock(t=0.35)
    pause = PauseTimer(clock, 0.3)
    assert not pause.armed
    assert not pause.due()

    pause.arm()
    assert pause.remaining_s() == pytest.approx(0.3)
    clock.advance(0.1)
    assert not pause.due()

    # Re-arming while armed keeps the original start.
    pause.arm()
    clock.advance(0.2)
    assert pause.due()

    pause.reset()
    assert not pause.armed
    assert pause.remaining_s() == 0.0


def test_zero_pause_is_due_immediately() -> None:
    pause = PauseTimer(FakeClock(), 0.0)
    pause.arm()
    assert pause.due()


def test_pause_timer_rejects_negative_duration() -> None:
    with pytest.raises(ValueError):
        PauseTimer(FakeClock(), -0.1)


def test_real_clock_is_monotonic() -> None:
    clock = RealClock()
    a = clock.now()
    b = clock.now()
    assert b >= a
