"""Tests for session progression."""
import random

import pytest

from sweepbot.exceptions import ValidationError
from sweepbot.models.session_models import (
    ProgressionMode,
    SessionConfig,
    SessionPhase,
    Stage,
    SubmissionOutcome,
    TTSMode,
)
from sweepbot.services.chunker import make_sentence
from sweepbot.services.session_service import SessionController, round_half_up

FOX = "The quick brown fox jumps over the lazy dog."
APPLES = "I like green apples."


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_controller(texts, clock, **config) -> SessionController:
    sentences = [make_sentence(text) for text in texts]
    return SessionController(sentences, SessionConfig(**config), clock=clock, rng=random.Random(7))


def solve(controller: SessionController):
    return controller.submit(list(controller.current_view().correct_order))


def wrong_order(controller: SessionController):
    return list(reversed(controller.current_view().correct_order))


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(12.49) == 12
    assert round_half_up(0) == 0


def test_single_correct_answer_completes_session(clock):
    controller = make_controller([FOX], clock, selected_stages=(Stage.CHUNK,))
    view = controller.start()
    assert view.correct_order == ("The quick brown", "fox jumps over", "the lazy dog.")
    assert sorted(view.tiles) == sorted(view.correct_order)

    clock.tick(12.5)
    result = solve(controller)
    assert result.outcome is SubmissionOutcome.CORRECT
    assert result.advance_after == 0
    assert result.record.attempts_in_stage == 1
    assert result.record.hints_used == 0
    assert result.record.elapsed_seconds == 13
    assert controller.phase is SessionPhase.AWAITING_ADVANCE

    assert controller.advance() is SessionPhase.COMPLETED
    summary = controller.summary()
    assert summary.correct_count == 1
    assert summary.total_items == 1
    assert summary.accuracy == 100
    assert not summary.timed_out


def test_incomplete_submission_is_rejected(clock):
    controller = make_controller([FOX], clock)
    view = controller.start()
    result = controller.submit([view.tiles[0], None, ""])
    assert result.outcome is SubmissionOutcome.REJECTED_INCOMPLETE
    assert controller.state.total_attempts == 0

    result = controller.submit([view.tiles[0]])
    assert result.outcome is SubmissionOutcome.REJECTED_INCOMPLETE


def test_wrong_answer_gives_hint_and_errors(clock):
    controller = make_controller([FOX], clock, selected_stages=(Stage.CHUNK,), attempt_limit=3)
    controller.start()
    result = controller.submit(wrong_order(controller))
    assert result.outcome is SubmissionOutcome.WRONG
    assert result.hint.startswith("❌ Think again!")
    assert result.attempts_remaining == 2
    assert "Tries left: 2" in result.message
    assert [error.position for error in result.errors] == [0, 2]
    assert controller.state.wrong_attempts == 1
    assert controller.phase is SessionPhase.IN_STAGE


def test_unlimited_attempts_never_reach_limit(clock):
    controller = make_controller([FOX], clock, selected_stages=(Stage.CHUNK,))
    controller.start()
    for _ in range(10):
        result = controller.submit(wrong_order(controller))
        assert result.outcome is SubmissionOutcome.WRONG
        assert result.attempts_remaining is None
    assert solve(controller).record.attempts_in_stage == 11


def test_attempt_limit_reveals_answer_and_waits_for_skip(clock):
    controller = make_controller([FOX, APPLES], clock, selected_stages=(Stage.CHUNK,), attempt_limit=2)
    controller.start()

    assert controller.submit(wrong_order(controller)).outcome is SubmissionOutcome.WRONG
    result = controller.submit(wrong_order(controller))
    assert result.outcome is SubmissionOutcome.LIMIT_REACHED
    assert result.revealed_answer == "The quick brown fox jumps over the lazy dog."
    assert result.record.skipped
    assert not result.record.correct
    assert result.record.submitted_text == "the lazy dog. fox jumps over The quick brown"
    assert controller.phase is SessionPhase.AWAITING_SKIP

    # Submitting while the answer is shown does nothing
    assert controller.submit(wrong_order(controller)).outcome is SubmissionOutcome.IGNORED
    assert controller.advance() is SessionPhase.AWAITING_SKIP

    assert controller.skip() is SessionPhase.IN_STAGE
    view = controller.current_view()
    assert view.sentence.text == APPLES
    assert view.attempts_in_stage == 0
    assert view.attempts_remaining == 2


def test_skip_and_advance_ignored_in_stage(clock):
    controller = make_controller([FOX], clock)
    controller.start()
    assert controller.skip() is SessionPhase.IN_STAGE
    assert controller.advance() is SessionPhase.IN_STAGE


def _visit_order(controller: SessionController):
    visited = []
    controller.start()
    while controller.is_active:
        view = controller.current_view()
        visited.append((view.sentence_index, int(view.stage)))
        solve(controller)
        controller.advance()
    return visited


def test_cycle_mode_visits_every_sentence_per_stage(clock):
    controller = make_controller(
        [FOX, APPLES], clock,
        selected_stages=(Stage.CHUNK, Stage.KEY_ELEMENT),
        progression_mode=ProgressionMode.CYCLE,
    )
    assert _visit_order(controller) == [(0, 1), (1, 1), (0, 2), (1, 2)]
    assert controller.phase is SessionPhase.COMPLETED
    assert controller.accuracy() == 100


def test_focus_mode_visits_every_stage_per_sentence(clock):
    controller = make_controller(
        [FOX, APPLES], clock,
        selected_stages=(Stage.CHUNK, Stage.KEY_ELEMENT),
        progression_mode=ProgressionMode.FOCUS,
    )
    assert _visit_order(controller) == [(0, 1), (0, 2), (1, 1), (1, 2)]


def test_stage_subset_starts_at_first_selected_stage(clock):
    controller = make_controller([FOX], clock, selected_stages=(Stage.KEY_ELEMENT, Stage.FULL_WORD))
    assert controller.start().stage is Stage.KEY_ELEMENT
    assert controller.total_items == 2


def test_progress(clock):
    controller = make_controller(
        [FOX, APPLES], clock,
        selected_stages=(Stage.CHUNK, Stage.KEY_ELEMENT),
        progression_mode=ProgressionMode.CYCLE,
    )
    assert controller.start().progress == 0
    solve(controller)
    controller.advance()
    assert controller.current_view().progress == 0.25


def test_accuracy_counts_skipped_items_as_missed(clock):
    controller = make_controller([FOX, APPLES], clock, selected_stages=(Stage.CHUNK,), attempt_limit=1)
    controller.start()
    assert controller.submit(wrong_order(controller)).outcome is SubmissionOutcome.LIMIT_REACHED
    controller.skip()
    solve(controller)
    controller.advance()
    summary = controller.summary()
    assert summary.accuracy == 50
    assert summary.wrong_attempts == 1
    assert summary.total_attempts == 2
    assert 0 <= summary.accuracy <= 100
    assert [record.correct for record in summary.results] == [False, True]


def test_hint_requests_are_recorded(clock):
    controller = make_controller([FOX], clock, selected_stages=(Stage.CHUNK,))
    controller.start()
    assert controller.request_hint().startswith("📘")
    assert controller.request_hint().startswith("📗")
    result = solve(controller)
    assert result.record.hints_used == 2
    assert controller.request_hint() is None
    assert controller.summary().hints_used == 2


def test_expire_finishes_session(clock):
    controller = make_controller([FOX, APPLES], clock)
    controller.start()
    clock.tick(60)
    summary = controller.expire()
    assert summary.timed_out
    assert summary.duration_seconds == 60
    assert controller.phase is SessionPhase.COMPLETED
    assert controller.submit(wrong_order(controller)).outcome is SubmissionOutcome.IGNORED

    # A second expiry changes nothing
    assert controller.expire().correct_count == 0


def test_speech_match_counts_as_correct(clock):
    controller = make_controller([FOX], clock, selected_stages=(Stage.FULL_WORD,))
    controller.start()
    result = controller.on_speech_final("the quick brown fox jumps over the lazy dog")
    assert result.outcome is SubmissionOutcome.CORRECT
    assert result.record.speech_mode
    assert result.record.attempts_in_stage == 1
    assert controller.phase is SessionPhase.AWAITING_ADVANCE


def test_speech_mismatch_does_not_enforce_limit(clock):
    controller = make_controller([FOX], clock, attempt_limit=1)
    controller.start()
    for _ in range(3):
        result = controller.on_speech_final("the quick brown cat")
        assert result.outcome is SubmissionOutcome.WRONG
        assert "❌cat" in result.message
    assert controller.phase is SessionPhase.IN_STAGE
    assert controller.state.wrong_attempts == 3

    assert controller.on_speech_final("  ").outcome is SubmissionOutcome.REJECTED_INCOMPLETE


def test_tts_modes(clock):
    free = make_controller([FOX], clock, tts_mode=TTSMode.FREE)
    assert free.start().can_speak
    assert free.request_speak() == FOX

    after_correct = make_controller([FOX], clock, tts_mode=TTSMode.AFTER_CORRECT)
    assert not after_correct.start().can_speak
    assert after_correct.request_speak() is None
    assert solve(after_correct).speak == FOX

    silent = make_controller([FOX], clock, tts_mode=TTSMode.NONE)
    silent.start()
    assert solve(silent).speak is None


def test_random_order_shuffles_sentences(clock):
    texts = [FOX, APPLES, "She reads a book every single day."]
    controller = make_controller(texts, clock, random_order=True)
    controller.start()
    order = [sentence.text for sentence in controller.state.sentences]
    assert order != texts
    assert sorted(order) == sorted(texts)


def test_restart_resets_counters(clock):
    controller = make_controller([FOX], clock, selected_stages=(Stage.CHUNK,))
    controller.start()
    controller.submit(wrong_order(controller))
    solve(controller)
    controller.advance()

    view = controller.restart()
    assert view.sentence_index == 0
    assert controller.is_active
    assert controller.state.correct_count == 0
    assert controller.state.result_log == []


def test_start_without_sentences():
    controller = SessionController([])
    with pytest.raises(ValidationError):
        controller.start()
    with pytest.raises(ValidationError):
        controller.current_view()
