from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .hue_math import circular_distance, circular_midpoint, clockwise_span, normalize_hue
from .palette import COLOR_ORDER, REFERENCE_HUES, TRANSITIONS, ColorName


class TestMode(str, Enum):
    __test__ = False

    NORMAL = "normal"
    REFINE = "refine"

    @classmethod
    def _missing_(cls, value: object) -> "TestMode | None":
        # "full" is the user-facing name of a normal run.
        if isinstance(value, str) and value.strip().lower() == "full":
            return cls.NORMAL
        return None


class Locale(str, Enum):
    EN = "en"
    KO = "ko"
    JA = "ja"

    @classmethod
    def coerce(cls, value: object) -> "Locale":
        """Known locale or English; never raises."""

        if isinstance(value, Locale):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.EN


@dataclass(frozen=True, slots=True)
class TestResult:
    """Durable, shareable output of one session.

    ``boundaries`` holds one normalized hue per transition, in transition order.
    """

    __test__ = False

    boundaries: tuple[float, ...]
    mode: TestMode
    timestamp: float
    locale: Locale = Locale.EN
    nickname: str | None = None


@dataclass(frozen=True, slots=True)
class Deviation:
    color: ColorName
    user_hue: float
    reference_hue: float
    difference: float  # signed degrees, positive = shifted clockwise


@dataclass(frozen=True, slots=True)
class ColorRegion:
    name: ColorName
    start_hue: float
    end_hue: float
    span_degrees: float


@dataclass(frozen=True, slots=True)
class ResultSummary:
    deviations: tuple[Deviation, ...]
    mean_absolute_deviation: float
    most_shifted: Deviation
    color_regions: tuple[ColorRegion, ...]


def get_color_regions(user_boundaries: Sequence[float]) -> tuple[ColorRegion, ...]:
    """Partition of the circle induced by the user's boundary hues.

    Region i runs clockwise from boundary i to boundary i+1 and is named after
    the colour that starts at boundary i. Boundaries in wheel order give spans
    that sum to 360; coincident neighbours give an empty region.
    """

    if len(user_boundaries) != len(TRANSITIONS):
        raise ValueError(f"expected {len(TRANSITIONS)} boundaries, got {len(user_boundaries)}")

    hues = [normalize_hue(h) for h in user_boundaries]
    n = len(hues)
    regions: list[ColorRegion] = []
    for i, transition in enumerate(TRANSITIONS):
        start = hues[i]
        end = hues[(i + 1) % n]
        regions.append(
            ColorRegion(
                name=transition.to_color,
                start_hue=start,
                end_hue=end,
                span_degrees=clockwise_span(start, end),
            )
        )
    return tuple(regions)


def region_center(region: ColorRegion) -> float:
    if region.span_degrees < 180.0:
        return circular_midpoint(region.start_hue, region.end_hue)
    # Half a turn or more: the angular mean would land on the opposite side.
    return normalize_hue(region.start_hue + region.span_degrees / 2.0)


def compute_deviations(user_boundaries: Sequence[float]) -> tuple[Deviation, ...]:
    """One deviation per colour, in wheel order starting at red.

    Missing trailing boundaries fall back to the standard hue.
    """

    regions = {r.name: r for r in get_color_regions(_filled(user_boundaries))}

    out: list[Deviation] = []
    for color in COLOR_ORDER:
        user_hue = region_center(regions[color])
        reference = REFERENCE_HUES[color]
        out.append(
            Deviation(
                color=color,
                user_hue=user_hue,
                reference_hue=reference,
                difference=circular_distance(reference, user_hue),
            )
        )
    return tuple(out)


def summarize_results(user_boundaries: Sequence[float]) -> ResultSummary:
    deviations = compute_deviations(user_boundaries)
    mean_abs = sum(abs(d.difference) for d in deviations) / float(len(deviations))
    # max() keeps the first of equal entries.
    most_shifted = max(deviations, key=lambda d: abs(d.difference))
    return ResultSummary(
        deviations=deviations,
        mean_absolute_deviation=mean_abs,
        most_shifted=most_shifted,
        color_regions=get_color_regions(_filled(user_boundaries)),
    )


def summarize_test_result(result: TestResult) -> ResultSummary:
    return summarize_results(result.boundaries)


def _filled(user_boundaries: Sequence[float]) -> list[float]:
    return [
        normalize_hue(user_boundaries[i]) if i < len(user_boundaries) else t.standard_hue
        for i, t in enumerate(TRANSITIONS)
    ]
