from __future__ import annotations

import colorsys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .hue_math import circular_midpoint, clockwise_span, normalize_hue


class ColorName(str, Enum):
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    CYAN = "cyan"
    BLUE = "blue"
    VIOLET = "violet"
    PINK = "pink"


COLOR_ORDER: tuple[ColorName, ...] = tuple(ColorName)


@dataclass(frozen=True, slots=True)
class SearchRange:
    """Linear search interval in degrees.

    The one range that crosses red keeps high > 360 (e.g. 320-390) so the
    interval stays ordered.
    """

    low: float
    high: float

    @property
    def wraps(self) -> bool:
        return self.high > 360.0

    @property
    def center(self) -> float:
        return (self.low + self.high) / 2.0


@dataclass(frozen=True, slots=True)
class ColorTransition:
    from_color: ColorName
    to_color: ColorName
    standard_hue: float
    search_range: SearchRange

    @property
    def label(self) -> str:
        return f"{self.from_color.value}->{self.to_color.value}"


# Population-standard boundaries (XKCD colour survey, Munsell, CIE).
TRANSITIONS: tuple[ColorTransition, ...] = (
    ColorTransition(ColorName.RED, ColorName.ORANGE, 18.0, SearchRange(0.0, 40.0)),
    ColorTransition(ColorName.ORANGE, ColorName.YELLOW, 48.0, SearchRange(30.0, 65.0)),
    ColorTransition(ColorName.YELLOW, ColorName.GREEN, 78.0, SearchRange(55.0, 105.0)),
    ColorTransition(ColorName.GREEN, ColorName.CYAN, 148.0, SearchRange(120.0, 175.0)),
    ColorTransition(ColorName.CYAN, ColorName.BLUE, 208.0, SearchRange(180.0, 235.0)),
    ColorTransition(ColorName.BLUE, ColorName.VIOLET, 258.0, SearchRange(235.0, 285.0)),
    ColorTransition(ColorName.VIOLET, ColorName.PINK, 300.0, SearchRange(280.0, 325.0)),
    ColorTransition(ColorName.PINK, ColorName.RED, 345.0, SearchRange(320.0, 390.0)),
)

# Centre of each colour between its standard boundaries.
REFERENCE_HUES: dict[ColorName, float] = {
    ColorName.RED: 1.5,
    ColorName.ORANGE: 33.0,
    ColorName.YELLOW: 63.0,
    ColorName.GREEN: 113.0,
    ColorName.CYAN: 178.0,
    ColorName.BLUE: 233.0,
    ColorName.VIOLET: 279.0,
    ColorName.PINK: 322.5,
}


def standard_boundaries() -> tuple[float, ...]:
    return tuple(t.standard_hue for t in TRANSITIONS)


def reference_hue_from_standards(color: ColorName) -> float:
    """Recompute a colour's reference hue from the standard boundary table."""

    idx = COLOR_ORDER.index(color)
    # Colour i starts at transition i-1 and ends at transition i.
    start = TRANSITIONS[(idx - 1) % len(TRANSITIONS)].standard_hue
    end = TRANSITIONS[idx].standard_hue
    return circular_midpoint(start, end)


def hue_to_rgb(hue: float) -> tuple[int, int, int]:
    """sRGB triple for a stimulus hue at S=100%, L=50%."""

    r, g, b = colorsys.hls_to_rgb(normalize_hue(hue) / 360.0, 0.5, 1.0)
    return int(round(r * 255)), int(round(g * 255)), int(round(b * 255))


def hsl_string(hue: float) -> str:
    h = normalize_hue(hue)
    text = f"{h:.1f}".rstrip("0").rstrip(".")
    return f"hsl({text}, 100%, 50%)"


def color_name_for_hue(hue: float, boundaries: Sequence[float]) -> ColorName:
    """Which of the user's colour regions a hue falls into.

    A hue sitting exactly on boundary i belongs to the colour that starts
    there (transition i's ``to`` side).
    """

    if len(boundaries) != len(TRANSITIONS):
        raise ValueError(f"expected {len(TRANSITIONS)} boundaries, got {len(boundaries)}")

    h = normalize_hue(hue)
    best_idx = 0
    best_span = 360.0
    for idx, boundary in enumerate(boundaries):
        span = clockwise_span(normalize_hue(boundary), h)
        # <= so a later coincident boundary wins; the region before it is empty.
        if span <= best_span:
            best_idx = idx
            best_span = span
    return TRANSITIONS[best_idx].to_color
