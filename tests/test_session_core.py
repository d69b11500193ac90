from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from spectrum_sense.palette import TRANSITIONS
from spectrum_sense.results import Locale, TestMode, TestResult
from spectrum_sense.session import (
    Question,
    SessionConfig,
    SessionPhase,
    TestState,
    advance_from_interstitial,
    answer_question,
    compute_total_steps,
    create_test_session,
    get_consistency_score,
    get_current_question,
    get_test_results,
    is_test_complete,
    resolve_choice,
)

Answerer = Callable[[TestState, Question], bool]


class FakeRng:
    """Identity shuffle, never swaps, always picks the first entry."""

    def shuffle(self, items: Sequence[int]) -> list[int]:
        return list(items)

    def coin(self) -> bool:
        return False

    def pick(self, count: int) -> int:
        return 0


def threshold_observer(state: TestState, q: Question) -> bool:
    """Says "from colour" whenever the hue is below the standard boundary."""
    t = TRANSITIONS[q.boundary_index]
    hue = q.hue
    if t.search_range.wraps and hue < t.search_range.low:
        hue += 360.0
    return hue < t.standard_hue


def drive(state: TestState, answer: Answerer, limit: int = 500) -> tuple[TestState, list[Question]]:
    asked: list[Question] = []
    for _ in range(limit):
        if is_test_complete(state):
            break
        if state.phase is SessionPhase.INTERSTITIAL:
            state = advance_from_interstitial(state)
            continue
        q = get_current_question(state)
        asked.append(q)
        state = answer_question(state, answer(state, q))
    return state, asked


def test_new_normal_session_shape() -> None:
    s = create_test_session(TestMode.NORMAL, Locale.EN, seed=1)
    assert s.phase is SessionPhase.TESTING
    assert s.current_step == 0
    assert s.total_steps == 8 * 6 + 6
    assert sorted(s.boundary_order) == list(range(8))
    assert s.current_boundary_index == s.boundary_order[0]
    assert get_consistency_score(s) == 1.0


def test_refine_session_totals() -> None:
    previous = TestResult(
        boundaries=tuple(t.standard_hue for t in TRANSITIONS),
        mode=TestMode.NORMAL,
        timestamp=0.0,
    )
    s = create_test_session(TestMode.REFINE, Locale.KO, previous, seed=1)
    assert s.total_steps == 8 * 3 + 3
    assert s.locale is Locale.KO
    for b, t in zip(s.boundaries, TRANSITIONS):
        assert b.high - b.low <= 30.0
        assert b.low <= t.standard_hue <= b.high


def test_refine_without_previous_searches_full_ranges(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("WARNING"):
        s = create_test_session("refine", seed=2)
    assert s.total_steps == 27
    assert (s.boundaries[0].low, s.boundaries[0].high) == (0.0, 40.0)
    assert "without previous results" in caplog.text


def test_session_config_overrides_step_counts() -> None:
    s = create_test_session(seed=1, config=SessionConfig(normal_steps=4))
    assert s.total_steps == 8 * 4 + 4
    assert compute_total_steps(()) == 0


def test_question_labels_follow_swap() -> None:
    s = create_test_session(seed=5)
    q = get_current_question(s)
    t = TRANSITIONS[q.boundary_index]
    if q.swapped:
        assert (q.first_label, q.second_label) == (t.to_color.value, t.from_color.value)
    else:
        assert (q.first_label, q.second_label) == (t.from_color.value, t.to_color.value)
    assert q.question_number == 1
    assert q.total_questions == 54
    assert q.progress == 0.0
    assert not q.is_catch_trial


def test_resolve_choice_undoes_the_swap() -> None:
    base = dict(
        hue=20.0,
        first_label="red",
        second_label="orange",
        progress=0.0,
        question_number=1,
        total_questions=54,
        boundary_index=0,
    )
    straight = Question(swapped=False, **base)
    swapped = Question(swapped=True, **base)

    assert resolve_choice(straight, True) is True
    assert resolve_choice(straight, False) is False
    assert resolve_choice(swapped, True) is False
    assert resolve_choice(swapped, False) is True


def test_answer_enters_interstitial_and_ignores_input_there() -> None:
    s = create_test_session(seed=9)
    s1 = answer_question(s, True)
    assert s1.phase is SessionPhase.INTERSTITIAL
    assert s1.current_step == 1
    assert s1.current_boundary_index == s.boundary_order[1]
    assert s1.question_log[0].boundary_index == s.boundary_order[0]

    assert answer_question(s1, False) is s1

    s2 = advance_from_interstitial(s1)
    assert s2.phase is SessionPhase.TESTING
    assert advance_from_interstitial(s2) is s2
    # The input state is never mutated.
    assert s.current_step == 0


def test_catch_trial_follows_each_round() -> None:
    s = create_test_session(seed=11)
    for _ in range(8):
        s = advance_from_interstitial(s)
        s = answer_question(s, threshold_observer(s, get_current_question(s)))

    assert s.phase is SessionPhase.INTERSTITIAL
    assert s.pending_catch_trial
    catch = s.active_catch_trial
    assert catch is not None
    assert any(
        e.boundary_index == catch.boundary_index and e.hue == catch.hue and e.choice == catch.expected_choice
        for e in s.question_log
    )

    s = advance_from_interstitial(s)
    assert s.phase is SessionPhase.CATCH_TRIAL
    q = get_current_question(s)
    assert q.is_catch_trial
    assert q.hue == catch.hue
    assert q.boundary_index == catch.boundary_index

    s = answer_question(s, not catch.expected_choice)
    assert s.catch_trial_results == (False,)
    assert s.current_round == 1
    assert s.current_step == 9
    assert s.phase is SessionPhase.INTERSTITIAL
    assert get_consistency_score(s) == 0.0


def test_full_run_with_consistent_observer() -> None:
    s, asked = drive(create_test_session(seed=21), threshold_observer)

    assert is_test_complete(s)
    assert len(asked) == s.total_steps == s.current_step
    assert {q.boundary_index for q in asked} == set(range(8))
    assert get_consistency_score(s) == 1.0
    assert get_current_question(s).progress == 1.0

    result = get_test_results(s, nickname="Sam", timestamp=1234.5)
    assert result.mode is TestMode.NORMAL
    assert result.locale is Locale.EN
    assert result.nickname == "Sam"
    assert result.timestamp == 1234.5
    assert len(result.boundaries) == 8
    for hue, t in zip(result.boundaries, TRANSITIONS):
        assert 0.0 <= hue < 360.0
        assert abs(hue - t.standard_hue) <= 0.6


def test_answers_after_completion_are_ignored() -> None:
    s, _ = drive(create_test_session(seed=3), threshold_observer)
    assert answer_question(s, True) is s
    assert answer_question(s, False) is s


def test_same_seed_same_answers_same_session() -> None:
    def trace(seed: int) -> list[tuple[int, float, bool, bool]]:
        _, asked = drive(create_test_session(seed=seed), threshold_observer)
        return [(q.boundary_index, q.hue, q.swapped, q.is_catch_trial) for q in asked]

    assert trace(77) == trace(77)


def test_injected_rng_controls_order_and_swap() -> None:
    rng = FakeRng()
    s = create_test_session(seed=1, rng=rng)
    assert s.boundary_order == tuple(range(8))
    assert s.current_swapped is False

    for idx in range(8):
        assert s.current_boundary_index == idx
        s = advance_from_interstitial(answer_question(s, True, rng=rng))

    assert s.phase is SessionPhase.CATCH_TRIAL
    assert s.active_catch_trial is not None
    assert s.active_catch_trial.boundary_index == 0


def test_progress_never_goes_backwards_when_searches_extend() -> None:
    def oscillating(state: TestState, q: Question) -> bool:
        if q.is_catch_trial:
            assert state.active_catch_trial is not None
            return state.active_catch_trial.expected_choice
        return state.boundaries[q.boundary_index].step % 2 == 0

    s, asked = drive(create_test_session(seed=4), oscillating)

    progress = [q.progress for q in asked]
    assert progress == sorted(progress)
    totals = [q.total_questions for q in asked]
    assert totals[0] == 54
    assert totals[-1] > 54
    assert len(asked) == s.total_steps
