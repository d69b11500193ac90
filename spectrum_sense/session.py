"""Adaptive 2AFC session over every colour transition.

The session is an immutable ``TestState`` value. Each transition function
takes a state and an input and returns a new state; the caller keeps exactly
one live copy. Randomness (round order, left/right swap, catch-trial pick) is
drawn from a ``SessionRng`` derived from the session seed and the step
counter, so replaying the same answers against the same seed reproduces the
same session.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

from .binary_search import (
    NORMAL_STEPS,
    REFINE_STEPS,
    REFINE_WINDOW_DEG,
    BinarySearchState,
    get_next_hue,
    get_result,
    init_binary_search,
    is_complete,
    record_choice,
)
from .palette import TRANSITIONS
from .results import Locale, TestMode, TestResult

log = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    TESTING = "testing"
    INTERSTITIAL = "interstitial"
    CATCH_TRIAL = "catch_trial"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class SessionConfig:
    normal_steps: int = NORMAL_STEPS
    refine_steps: int = REFINE_STEPS
    refine_window_deg: float = REFINE_WINDOW_DEG

    def steps_for(self, mode: TestMode) -> int:
        return self.refine_steps if mode is TestMode.REFINE else self.normal_steps


class SessionRng(Protocol):
    """Source of the session's randomness."""

    def shuffle(self, items: Sequence[int]) -> list[int]: ...
    def coin(self) -> bool: ...
    def pick(self, count: int) -> int: ...


class SeededRng:
    """Seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int | str) -> None:
        self._rng = random.Random(seed)

    @classmethod
    def derive(cls, seed: int, label: str) -> "SeededRng":
        return cls(f"{int(seed)}:{label}")

    def shuffle(self, items: Sequence[int]) -> list[int]:
        values = list(items)
        # Fisher-Yates.
        for i in range(len(values) - 1, 0, -1):
            j = self._rng.randint(0, i)
            values[i], values[j] = values[j], values[i]
        return values

    def coin(self) -> bool:
        return self._rng.random() < 0.5

    def pick(self, count: int) -> int:
        return self._rng.randrange(count)


@dataclass(frozen=True, slots=True)
class QuestionLogEntry:
    boundary_index: int
    hue: float
    choice: bool
    round: int


@dataclass(frozen=True, slots=True)
class CatchTrial:
    boundary_index: int
    hue: float
    expected_choice: bool


@dataclass(frozen=True, slots=True)
class Question:
    """View model for the UI (pure data).

    ``total_questions`` can grow mid-session; re-read it on every render.
    """

    hue: float
    first_label: str
    second_label: str
    progress: float
    question_number: int
    total_questions: int
    swapped: bool
    boundary_index: int
    is_catch_trial: bool = False


@dataclass(frozen=True, slots=True)
class TestState:
    __test__ = False

    mode: TestMode
    locale: Locale
    seed: int
    boundaries: tuple[BinarySearchState, ...]
    boundary_order: tuple[int, ...]
    round_position: int
    current_round: int
    current_boundary_index: int
    current_step: int
    total_steps: int
    phase: SessionPhase
    current_swapped: bool
    pending_catch_trial: bool = False
    active_catch_trial: CatchTrial | None = None
    catch_trial_results: tuple[bool, ...] = ()
    question_log: tuple[QuestionLogEntry, ...] = ()
    previous_results: TestResult | None = None
    reported_progress: float = 0.0


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def compute_total_steps(boundaries: Sequence[BinarySearchState]) -> int:
    """Every search step plus one catch trial per round.

    A round visits each still-active boundary once, so the number of rounds is
    the largest ``max_steps``.
    """

    if not boundaries:
        return 0
    real_steps = sum(b.max_steps for b in boundaries)
    rounds = max(b.max_steps for b in boundaries)
    return real_steps + rounds


def create_test_session(
    mode: TestMode | str = TestMode.NORMAL,
    locale: Locale | str = Locale.EN,
    previous_results: TestResult | None = None,
    *,
    seed: int | None = None,
    config: SessionConfig | None = None,
    rng: SessionRng | None = None,
) -> TestState:
    cfg = config or SessionConfig()
    mode = TestMode(mode)
    seed = new_seed() if seed is None else int(seed)
    rng = rng or SeededRng.derive(seed, "setup")

    if mode is TestMode.REFINE and previous_results is None:
        log.warning("refine session started without previous results; searching full ranges")

    max_steps = cfg.steps_for(mode)
    prev = () if previous_results is None else tuple(previous_results.boundaries)
    boundaries = tuple(
        init_binary_search(
            transition,
            max_steps,
            prev[i] if i < len(prev) else None,
            window_deg=cfg.refine_window_deg,
        )
        for i, transition in enumerate(TRANSITIONS)
    )
    order = tuple(rng.shuffle(range(len(boundaries))))

    state = TestState(
        mode=mode,
        locale=Locale.coerce(locale),
        seed=seed,
        boundaries=boundaries,
        boundary_order=order,
        round_position=0,
        current_round=0,
        current_boundary_index=order[0],
        current_step=0,
        total_steps=compute_total_steps(boundaries),
        phase=SessionPhase.TESTING,
        current_swapped=rng.coin(),
        previous_results=previous_results,
    )
    log.debug("session %s started: mode=%s order=%s", seed, mode.value, order)
    return state


def get_current_question(state: TestState) -> Question:
    if state.phase is SessionPhase.CATCH_TRIAL and state.active_catch_trial is not None:
        idx = state.active_catch_trial.boundary_index
        hue = state.active_catch_trial.hue
        catch = True
    else:
        idx = state.current_boundary_index
        hue = get_next_hue(state.boundaries[idx])
        catch = False

    transition = state.boundaries[idx].transition
    from_label = transition.from_color.value
    to_label = transition.to_color.value
    first, second = (to_label, from_label) if state.current_swapped else (from_label, to_label)

    return Question(
        hue=hue,
        first_label=first,
        second_label=second,
        progress=_progress(state),
        question_number=state.current_step + 1,
        total_questions=state.total_steps,
        swapped=state.current_swapped,
        boundary_index=idx,
        is_catch_trial=catch,
    )


def resolve_choice(question: Question, picked_first: bool) -> bool:
    """Map a press on the first (left) option to "looked like the from colour"."""

    return bool(picked_first) != bool(question.swapped)


def answer_question(state: TestState, chose_first: bool, *, rng: SessionRng | None = None) -> TestState:
    """Record one answer. ``chose_first`` is semantic: the stimulus looked like ``from``.

    Answering a completed session, or one paused in the interstitial, returns
    the state unchanged.
    """

    if state.phase in (SessionPhase.COMPLETE, SessionPhase.INTERSTITIAL):
        return state

    rng = rng or SeededRng.derive(state.seed, f"answer-{state.current_step}")
    if state.phase is SessionPhase.CATCH_TRIAL:
        return _answer_catch_trial(state, bool(chose_first), rng)
    return _answer_normal_question(state, bool(chose_first), rng)


def advance_from_interstitial(state: TestState) -> TestState:
    if state.phase is not SessionPhase.INTERSTITIAL:
        return state
    if state.pending_catch_trial and state.active_catch_trial is not None:
        return replace(state, phase=SessionPhase.CATCH_TRIAL)
    return replace(state, phase=SessionPhase.TESTING)


def is_test_complete(state: TestState) -> bool:
    return state.phase is SessionPhase.COMPLETE


def get_test_results(
    state: TestState,
    locale: Locale | str | None = None,
    *,
    nickname: str | None = None,
    timestamp: float | None = None,
) -> TestResult:
    return TestResult(
        boundaries=tuple(get_result(b) for b in state.boundaries),
        mode=state.mode,
        timestamp=time.time() if timestamp is None else float(timestamp),
        locale=state.locale if locale is None else Locale.coerce(locale),
        nickname=nickname,
    )


def get_consistency_score(state: TestState) -> float:
    results = state.catch_trial_results
    if not results:
        return 1.0
    return sum(1 for r in results if r) / float(len(results))


def active_boundary_indices(boundaries: Sequence[BinarySearchState]) -> list[int]:
    return [i for i, b in enumerate(boundaries) if not is_complete(b)]


def _answer_normal_question(state: TestState, chose_first: bool, rng: SessionRng) -> TestState:
    idx = state.current_boundary_index
    searched = state.boundaries[idx]

    boundaries = list(state.boundaries)
    boundaries[idx] = record_choice(searched, chose_first)

    entry = QuestionLogEntry(
        boundary_index=idx,
        hue=get_next_hue(searched),
        choice=chose_first,
        round=state.current_round,
    )
    question_log = state.question_log + (entry,)
    next_pos = state.round_position + 1

    nxt = replace(
        state,
        boundaries=tuple(boundaries),
        current_step=state.current_step + 1,
        total_steps=compute_total_steps(boundaries),
        question_log=question_log,
        round_position=next_pos,
        current_swapped=rng.coin(),
    )

    if next_pos < len(state.boundary_order):
        return _with_progress(
            replace(
                nxt,
                current_boundary_index=state.boundary_order[next_pos],
                phase=SessionPhase.INTERSTITIAL,
            )
        )

    catch = _pick_catch_trial(question_log, state.current_round, rng)
    if catch is not None:
        log.debug(
            "round %d done; catch trial on boundary %d at %.1f",
            state.current_round,
            catch.boundary_index,
            catch.hue,
        )
        return _with_progress(
            replace(
                nxt,
                phase=SessionPhase.INTERSTITIAL,
                pending_catch_trial=True,
                active_catch_trial=catch,
            )
        )

    return _next_round_or_complete(nxt, rng)


def _answer_catch_trial(state: TestState, chose_first: bool, rng: SessionRng) -> TestState:
    catch = state.active_catch_trial
    consistent = True if catch is None else chose_first == catch.expected_choice

    nxt = replace(
        state,
        current_step=state.current_step + 1,
        pending_catch_trial=False,
        active_catch_trial=None,
        catch_trial_results=state.catch_trial_results + (consistent,),
        current_swapped=rng.coin(),
    )
    return _next_round_or_complete(nxt, rng)


def _next_round_or_complete(state: TestState, rng: SessionRng) -> TestState:
    active = active_boundary_indices(state.boundaries)
    if not active:
        log.info(
            "session %s complete after %d answers (consistency %.2f)",
            state.seed,
            state.current_step,
            get_consistency_score(state),
        )
        return _with_progress(replace(state, phase=SessionPhase.COMPLETE))

    order = tuple(rng.shuffle(active))
    return _with_progress(
        replace(
            state,
            boundary_order=order,
            current_boundary_index=order[0],
            round_position=0,
            current_round=state.current_round + 1,
            phase=SessionPhase.INTERSTITIAL,
        )
    )


def _pick_catch_trial(
    question_log: Sequence[QuestionLogEntry],
    current_round: int,
    rng: SessionRng,
) -> CatchTrial | None:
    entries = [e for e in question_log if e.round == current_round]
    if not entries:
        return None
    pick = entries[rng.pick(len(entries))]
    return CatchTrial(boundary_index=pick.boundary_index, hue=pick.hue, expected_choice=pick.choice)


def _progress(state: TestState) -> float:
    if state.total_steps <= 0:
        return 1.0
    return min(1.0, max(state.reported_progress, state.current_step / float(state.total_steps)))


def _with_progress(state: TestState) -> TestState:
    return replace(state, reported_progress=_progress(state))
