"""Session progression: sentence/stage sequencing, attempt limits, scoring and the result log."""
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from sweepbot import monitoring
from sweepbot.config import settings
from sweepbot.exceptions import ValidationError
from sweepbot.models.session_models import (
    AttemptRecord,
    PlacementError,
    ProgressionMode,
    Sentence,
    SessionConfig,
    SessionPhase,
    SessionSummary,
    Stage,
    StageView,
    SubmissionOutcome,
    SubmissionResult,
    TTSMode,
)
from sweepbot.services.chunker import chunks_for, shuffle_items
from sweepbot.services.hint_service import HintService
from sweepbot.services.speech_service import format_word_diff, speech_matches, word_diff

logger = logging.getLogger(__name__)

MSG_FILL_ALL_SLOTS = "💡 Fill every slot first!"
MSG_CORRECT = "🎉 Correct! Well done!"
MSG_SPEECH_CORRECT = "🎉 Perfect! You said it exactly right!"
MSG_NOTHING_HEARD = "🎤 Nothing was heard. Try again!"


def round_half_up(value: float) -> int:
    """Round like a calculator: 0.5 goes up."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


@dataclass
class SessionState:
    """Mutable progress of one session. Only SessionController changes it."""
    sentences: List[Sentence]
    config: SessionConfig
    phase: SessionPhase = SessionPhase.NOT_STARTED
    current_sentence_index: int = 0
    current_stage: Stage = Stage.CHUNK
    attempts_in_current_stage: int = 0
    correct_count: int = 0
    total_attempts: int = 0
    wrong_attempts: int = 0
    hints_used: int = 0
    result_log: List[AttemptRecord] = field(default_factory=list)
    current_errors: List[PlacementError] = field(default_factory=list)
    last_wrong_answer: str = ""
    correct_order: Tuple[str, ...] = ()
    tiles: Tuple[str, ...] = ()
    stage_started_at: float = 0.0
    session_started_at: float = 0.0
    timed_out: bool = False

    @property
    def current_sentence(self) -> Sentence:
        return self.sentences[self.current_sentence_index]


class SessionController:
    """Owns a SessionState and funnels every transition through its methods.

    The controller is synchronous; callers must not run two transitions at the
    same time. Delays (the pause after a correct answer) belong to the caller:
    submit() returns advance_after and the caller then invokes advance().
    """

    def __init__(
        self,
        sentences: Sequence[Sentence],
        config: Optional[SessionConfig] = None,
        hint_service: Optional[HintService] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self._original_sentences = list(sentences)
        self.state = SessionState(sentences=list(sentences), config=config or SessionConfig())
        self.hint_service = hint_service or HintService()
        self.clock = clock
        self.rng = rng or random.Random()

    @property
    def config(self) -> SessionConfig:
        return self.state.config

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def is_active(self) -> bool:
        return self.state.phase not in (SessionPhase.NOT_STARTED, SessionPhase.COMPLETED)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> StageView:
        """Begin (or begin again) with the first item.

        Raises:
            ValidationError: if there are no sentences.
        """
        if not self._original_sentences:
            raise ValidationError("Add at least one sentence first!")
        if self.is_active:
            monitoring.active_sessions.dec()

        sentences = list(self._original_sentences)
        if self.config.random_order:
            sentences = shuffle_items(sentences, self.rng)

        self.state = SessionState(sentences=sentences, config=self.config)
        self.state.current_stage = self.config.selected_stages[0]
        self.state.session_started_at = self.clock()
        self.state.phase = SessionPhase.IN_STAGE
        self._enter_item()

        monitoring.sessions_started.labels(self.config.progression_mode.value).inc()
        monitoring.active_sessions.inc()
        logger.info(
            f"Session started: {len(sentences)} sentences, stages {[int(s) for s in self.config.selected_stages]}, "
            f"mode {self.config.progression_mode.value}, limit {self.config.attempt_limit}"
        )
        return self.current_view()

    def restart(self) -> StageView:
        """Start over with the same sentences and configuration."""
        return self.start()

    def expire(self) -> SessionSummary:
        """Timer ran out: finish now, whatever the current phase."""
        if self.state.phase is not SessionPhase.COMPLETED:
            self.state.timed_out = True
            self._complete("timer")
        return self.summary()

    def _complete(self, reason: str) -> None:
        was_active = self.is_active
        self.state.phase = SessionPhase.COMPLETED
        if was_active:
            monitoring.active_sessions.dec()
            monitoring.sessions_completed.labels(reason).inc()
            monitoring.session_duration.observe(max(0.0, self.clock() - self.state.session_started_at))
            monitoring.session_accuracy.observe(self.accuracy())
        logger.info(f"Session completed ({reason}): {self.state.correct_count}/{self.total_items} correct")

    # ------------------------------------------------------------------
    # Item bookkeeping
    # ------------------------------------------------------------------

    def _enter_item(self) -> None:
        state = self.state
        state.attempts_in_current_stage = 0
        state.current_errors = []
        state.last_wrong_answer = ""
        state.stage_started_at = self.clock()
        state.correct_order = tuple(chunks_for(state.current_sentence, state.current_stage))
        state.tiles = tuple(shuffle_items(state.correct_order, self.rng))

    def _elapsed(self) -> int:
        return round_half_up(max(0.0, self.clock() - self.state.stage_started_at))

    def _position(self) -> int:
        """How many items come before the current one in visiting order."""
        state = self.state
        stage_index = self.config.selected_stages.index(state.current_stage)
        if self.config.progression_mode is ProgressionMode.CYCLE:
            return stage_index * len(state.sentences) + state.current_sentence_index
        return state.current_sentence_index * len(self.config.selected_stages) + stage_index

    @property
    def total_items(self) -> int:
        return self.config.total_items(len(self.state.sentences))

    def attempts_remaining(self) -> Optional[int]:
        if self.config.attempt_limit <= 0:
            return None
        return max(0, self.config.attempt_limit - self.state.attempts_in_current_stage)

    def current_view(self) -> StageView:
        """What the learner is working on right now."""
        state = self.state
        if state.phase is SessionPhase.NOT_STARTED:
            raise ValidationError("The session has not started")
        total = self.total_items
        progress = 1.0 if state.phase is SessionPhase.COMPLETED else self._position() / total
        return StageView(
            sentence_index=state.current_sentence_index,
            sentence_count=len(state.sentences),
            stage=state.current_stage,
            sentence=state.current_sentence,
            correct_order=state.correct_order,
            tiles=state.tiles,
            progress=progress,
            attempts_in_stage=state.attempts_in_current_stage,
            attempts_remaining=self.attempts_remaining(),
            can_speak=self.config.tts_mode is TTSMode.FREE,
        )

    def _record(self, correct: bool, attempts: int, skipped: bool = False,
                submitted_text: str = "", speech_mode: bool = False) -> AttemptRecord:
        state = self.state
        record = AttemptRecord(
            sentence_text=state.current_sentence.text,
            stage=state.current_stage,
            correct=correct,
            attempts_in_stage=attempts,
            hints_used=state.hints_used,
            elapsed_seconds=self._elapsed(),
            errors=tuple(state.current_errors),
            skipped=skipped,
            submitted_text=submitted_text,
            speech_mode=speech_mode,
        )
        state.result_log.append(record)
        return record

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, current_order: Sequence[Optional[str]]) -> SubmissionResult:
        """Check the learner's placement of every tile.

        Args:
            current_order: Slot contents in order; None or "" marks an empty slot.
        """
        state = self.state
        if state.phase is not SessionPhase.IN_STAGE:
            logger.debug(f"Submit ignored in phase {state.phase.value}")
            return SubmissionResult(outcome=SubmissionOutcome.IGNORED)

        correct_order = list(state.correct_order)
        if len(current_order) != len(correct_order) or any(not slot for slot in current_order):
            return SubmissionResult(outcome=SubmissionOutcome.REJECTED_INCOMPLETE, message=MSG_FILL_ALL_SLOTS)

        state.total_attempts += 1
        state.attempts_in_current_stage += 1
        stage_label = str(int(state.current_stage))

        if list(current_order) == correct_order:
            state.correct_count += 1
            record = self._record(True, state.attempts_in_current_stage, submitted_text=state.last_wrong_answer)
            state.attempts_in_current_stage = 0
            state.current_errors = []
            state.last_wrong_answer = ""
            state.phase = SessionPhase.AWAITING_ADVANCE
            monitoring.submissions.labels(stage_label, SubmissionOutcome.CORRECT.value).inc()
            return SubmissionResult(
                outcome=SubmissionOutcome.CORRECT,
                message=MSG_CORRECT,
                record=record,
                advance_after=settings.session.advance_delay,
                speak=state.current_sentence.text if self.config.tts_mode is TTSMode.AFTER_CORRECT else None,
            )

        state.wrong_attempts += 1
        state.last_wrong_answer = " ".join(current_order)
        errors = tuple(
            PlacementError(position=i, placed=placed, expected=correct_order[i])
            for i, placed in enumerate(current_order)
            if placed != correct_order[i]
        )
        state.current_errors.extend(errors)

        limit = self.config.attempt_limit
        if limit > 0 and state.attempts_in_current_stage >= limit:
            record = self._record(
                False, state.attempts_in_current_stage, skipped=True, submitted_text=state.last_wrong_answer
            )
            state.current_errors = []
            state.last_wrong_answer = ""
            state.phase = SessionPhase.AWAITING_SKIP
            answer = " ".join(correct_order)
            monitoring.submissions.labels(stage_label, SubmissionOutcome.LIMIT_REACHED.value).inc()
            logger.info(f"Attempt limit reached on sentence {state.current_sentence_index + 1}, stage {stage_label}")
            return SubmissionResult(
                outcome=SubmissionOutcome.LIMIT_REACHED,
                message=f"❌ {limit} wrong tries!\n\nAnswer: {answer}",
                record=record,
                errors=errors,
                revealed_answer=answer,
                attempts_remaining=0,
            )

        hint = self.hint_service.select_hint(
            current_order, correct_order, state.current_sentence.text,
            state.attempts_in_current_stage, state.current_stage,
        )
        remaining = self.attempts_remaining()
        monitoring.submissions.labels(stage_label, SubmissionOutcome.WRONG.value).inc()
        monitoring.hints_requested.labels("wrong_answer").inc()
        return SubmissionResult(
            outcome=SubmissionOutcome.WRONG,
            message=hint if remaining is None else f"{hint}\n\nTries left: {remaining}",
            hint=hint,
            errors=errors,
            attempts_remaining=remaining,
        )

    def advance(self) -> SessionPhase:
        """Move on after a correct answer. Ignored in any other phase."""
        if self.state.phase is not SessionPhase.AWAITING_ADVANCE:
            logger.debug(f"Advance ignored in phase {self.state.phase.value}")
            return self.state.phase
        self._advance()
        return self.state.phase

    def skip(self) -> SessionPhase:
        """Move on after the attempt limit was reached. Ignored in any other phase."""
        state = self.state
        if state.phase is not SessionPhase.AWAITING_SKIP:
            logger.debug(f"Skip ignored in phase {state.phase.value}")
            return state.phase
        state.attempts_in_current_stage = 0
        state.current_errors = []
        state.last_wrong_answer = ""
        self._advance()
        return state.phase

    def _advance(self) -> None:
        state = self.state
        stages = self.config.selected_stages
        stage_index = stages.index(state.current_stage)
        last_sentence = state.current_sentence_index >= len(state.sentences) - 1
        last_stage = stage_index >= len(stages) - 1

        if self.config.progression_mode is ProgressionMode.CYCLE:
            if not last_sentence:
                state.current_sentence_index += 1
            elif not last_stage:
                state.current_stage = stages[stage_index + 1]
                state.current_sentence_index = 0
            else:
                self._complete("finished")
                return
        else:
            if not last_stage:
                state.current_stage = stages[stage_index + 1]
            elif not last_sentence:
                state.current_sentence_index += 1
                state.current_stage = stages[0]
            else:
                self._complete("finished")
                return

        state.phase = SessionPhase.IN_STAGE
        self._enter_item()

    def request_hint(self) -> Optional[str]:
        """Explicit hint request; levels cycle with every call. None outside a stage."""
        state = self.state
        if state.phase is not SessionPhase.IN_STAGE:
            return None
        state.hints_used += 1
        monitoring.hints_requested.labels("command").inc()
        return self.hint_service.command_hint(state.hints_used, state.correct_order, state.current_sentence.text)

    def on_speech_final(self, transcript: str) -> SubmissionResult:
        """Treat a final speech transcript as an answer for the whole sentence.

        A match counts as a correct answer made in one attempt. A mismatch
        counts as a wrong attempt but never triggers the attempt limit.
        """
        state = self.state
        if state.phase is not SessionPhase.IN_STAGE:
            return SubmissionResult(outcome=SubmissionOutcome.IGNORED)
        if not transcript or not transcript.strip():
            return SubmissionResult(outcome=SubmissionOutcome.REJECTED_INCOMPLETE, message=MSG_NOTHING_HEARD)

        target = state.current_sentence.text
        state.total_attempts += 1

        if speech_matches(transcript, target):
            state.correct_count += 1
            state.current_errors = []
            record = self._record(True, 1, submitted_text=state.last_wrong_answer, speech_mode=True)
            state.attempts_in_current_stage = 0
            state.last_wrong_answer = ""
            state.phase = SessionPhase.AWAITING_ADVANCE
            monitoring.speech_attempts.labels("correct").inc()
            return SubmissionResult(
                outcome=SubmissionOutcome.CORRECT,
                message=f"{MSG_SPEECH_CORRECT}\n\n✅ \"{transcript}\"",
                record=record,
                advance_after=settings.session.speech_advance_delay,
            )

        state.wrong_attempts += 1
        state.attempts_in_current_stage += 1
        state.last_wrong_answer = transcript
        diff = word_diff(transcript, target)
        monitoring.speech_attempts.labels("wrong").inc()
        return SubmissionResult(
            outcome=SubmissionOutcome.WRONG,
            message=(
                "❌ Not quite!\n\n"
                f"You said: {transcript}\n"
                f"Answer: {target}\n\n"
                f"{format_word_diff(diff)}"
            ),
            word_diff=diff,
        )

    def request_speak(self) -> Optional[str]:
        """Sentence to read aloud on a learner request; None unless the TTS mode is free."""
        if self.config.tts_mode is not TTSMode.FREE or not self.is_active:
            return None
        return self.state.current_sentence.text

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def accuracy(self) -> int:
        total = self.total_items
        if total <= 0:
            return 0
        return round_half_up(self.state.correct_count / total * 100)

    def summary(self) -> SessionSummary:
        state = self.state
        return SessionSummary(
            sentences=tuple(state.sentences),
            config=self.config,
            results=tuple(state.result_log),
            correct_count=state.correct_count,
            total_items=self.total_items,
            accuracy=self.accuracy(),
            total_attempts=state.total_attempts,
            wrong_attempts=state.wrong_attempts,
            hints_used=state.hints_used,
            timed_out=state.timed_out,
            duration_seconds=(
                0.0 if state.phase is SessionPhase.NOT_STARTED
                else max(0.0, self.clock() - state.session_started_at)
            ),
        )
