from __future__ import annotations

import math


def normalize_hue(h: float) -> float:
    """Map any finite angle into [0, 360)."""

    out = float(h) % 360.0
    # -1e-18 % 360 rounds to 360.0 in floating point.
    return 0.0 if out >= 360.0 else out


def circular_midpoint(a: float, b: float) -> float:
    """Angular mean of two hues.

    mean(345, 18) is ~1.5, not the 181.5 a linear average gives. Anything
    that needs "the hue between two boundary hues" goes through here.
    """

    a_rad = math.radians(a)
    b_rad = math.radians(b)
    sin_mean = (math.sin(a_rad) + math.sin(b_rad)) / 2.0
    cos_mean = (math.cos(a_rad) + math.cos(b_rad)) / 2.0
    return normalize_hue(math.degrees(math.atan2(sin_mean, cos_mean)))


def circular_distance(a: float, b: float) -> float:
    """Signed shortest path from a to b in (-180, 180]; positive is clockwise."""

    diff = normalize_hue(b - a)
    return diff - 360.0 if diff > 180.0 else diff


def clockwise_span(a: float, b: float) -> float:
    """Clockwise arc length from a to b in [0, 360)."""

    return normalize_hue(b - a)


def midpoint_in_range(low: float, high: float) -> float:
    """Midpoint of a search interval, normalized.

    Intervals with high > 360 are already unwrapped into linear space, so the
    linear mean is right there and the angular mean would not be.
    """

    if high > 360.0:
        return normalize_hue((low + high) / 2.0)
    return circular_midpoint(low, high)
