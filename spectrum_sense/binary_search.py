from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace

from .hue_math import midpoint_in_range, normalize_hue
from .palette import ColorTransition, SearchRange

NORMAL_STEPS = 6
REFINE_STEPS = 3
REFINE_WINDOW_DEG = 15.0

OSCILLATION_CHECK_STEP = 3
OSCILLATION_THRESHOLD = 3
MAX_EXTRA_STEPS = 2


@dataclass(frozen=True, slots=True)
class BinarySearchState:
    """One boundary's search.

    ``low``/``high`` live in the range's linear space (above 360 for the
    wrapping range); ``current_hue`` is the normalized stimulus hue.
    """

    transition: ColorTransition
    search_range: SearchRange
    low: float
    high: float
    current_hue: float
    step: int
    max_steps: int
    original_max_steps: int
    choices: tuple[bool, ...] = ()

    @property
    def done(self) -> bool:
        return is_complete(self)


def init_binary_search(
    transition: ColorTransition,
    max_steps: int = NORMAL_STEPS,
    previous_result: float | None = None,
    *,
    window_deg: float = REFINE_WINDOW_DEG,
) -> BinarySearchState:
    if max_steps < 1:
        raise ValueError("max_steps must be >= 1")
    if window_deg <= 0.0:
        raise ValueError("window_deg must be > 0")

    rng = transition.search_range
    low = float(rng.low)
    high = float(rng.high)

    if previous_result is not None:
        low, high = _refine_window(previous_result, rng, window_deg)

    return BinarySearchState(
        transition=transition,
        search_range=rng,
        low=low,
        high=high,
        current_hue=midpoint_in_range(low, high),
        step=0,
        max_steps=int(max_steps),
        original_max_steps=int(max_steps),
    )


def get_next_hue(state: BinarySearchState) -> float:
    return state.current_hue


def record_choice(state: BinarySearchState, chose_first: bool) -> BinarySearchState:
    """Narrow toward the perceived transition.

    ``chose_first`` means the stimulus looked like the ``from`` colour, so the
    boundary lies above it.
    """

    point = _to_comparable_hue(state.current_hue, state.low, state.high)
    if chose_first:
        new_low, new_high = point, state.high
    else:
        new_low, new_high = state.low, point

    choices = state.choices + (bool(chose_first),)

    max_steps = state.max_steps
    cap = state.original_max_steps + MAX_EXTRA_STEPS
    if state.step + 1 >= OSCILLATION_CHECK_STEP and max_steps < cap:
        if count_oscillations(choices) >= OSCILLATION_THRESHOLD:
            max_steps = min(max_steps + 1, cap)

    return replace(
        state,
        low=new_low,
        high=new_high,
        current_hue=midpoint_in_range(new_low, new_high),
        step=state.step + 1,
        max_steps=max_steps,
        choices=choices,
    )


def is_complete(state: BinarySearchState) -> bool:
    return state.step >= state.max_steps


def get_result(state: BinarySearchState) -> float:
    """Final estimate for this boundary, always in [0, 360)."""

    return normalize_hue(midpoint_in_range(state.low, state.high))


def count_oscillations(choices: Sequence[bool]) -> int:
    return sum(1 for i in range(1, len(choices)) if choices[i] != choices[i - 1])


def _to_comparable_hue(hue: float, low: float, high: float) -> float:
    if high > 360.0 and hue < low:
        return hue + 360.0
    return hue


def _to_range_space(hue: float, rng: SearchRange) -> float:
    """The copy of ``hue`` (mod 360) nearest the range centre, unclamped."""

    h = normalize_hue(hue)
    return h + 360.0 * round((rng.center - h) / 360.0)


def _refine_window(previous: float, rng: SearchRange, window_deg: float) -> tuple[float, float]:
    prev = _to_range_space(previous, rng)
    low = max(rng.low, prev - window_deg)
    high = min(rng.high, prev + window_deg)
    if low > high:
        # More than a window outside the range: centre on the nearest edge instead.
        prev = min(max(prev, rng.low), rng.high)
        low = max(rng.low, prev - window_deg)
        high = min(rng.high, prev + window_deg)
    return low, high
