"""Models for exercise sessions: sentences, configuration, attempt records and hint inputs."""
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Iterable, Optional, Tuple

from sweepbot.config import DEFAULT_TIMER_SECONDS
from sweepbot.exceptions import ConfigurationError


class Stage(IntEnum):
    """Exercise stages, from coarse phrase chunks to single words."""
    CHUNK = 1  # phrase chunks
    KEY_ELEMENT = 2  # subject / verb / rest
    FULL_WORD = 3  # every word

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]

    @property
    def description(self) -> str:
        return STAGE_DESCRIPTIONS[self]


STAGE_LABELS = {
    Stage.CHUNK: "Chunks",
    Stage.KEY_ELEMENT: "Key elements",
    Stage.FULL_WORD: "Every word",
}

STAGE_DESCRIPTIONS = {
    Stage.CHUNK: "Put the meaning chunks (phrases and clauses) in order",
    Stage.KEY_ELEMENT: "Put the key elements (subject, verb, object) in order",
    Stage.FULL_WORD: "Put every single word in order",
}

ALL_STAGES: Tuple[Stage, ...] = (Stage.CHUNK, Stage.KEY_ELEMENT, Stage.FULL_WORD)


class ProgressionMode(Enum):
    """Order in which (sentence, stage) items are visited."""
    FOCUS = "focus"  # every stage of a sentence, then the next sentence
    CYCLE = "cycle"  # every sentence at a stage, then the next stage


class TTSMode(Enum):
    """When the target sentence may be read aloud."""
    NONE = "none"
    AFTER_CORRECT = "after-correct"
    FREE = "free"


class SessionPhase(Enum):
    """Lifecycle of a session."""
    NOT_STARTED = "not_started"
    IN_STAGE = "in_stage"
    AWAITING_ADVANCE = "awaiting_advance"  # solved, waiting for the short success delay
    AWAITING_SKIP = "awaiting_skip"  # attempt limit reached, answer revealed
    COMPLETED = "completed"


@dataclass(frozen=True)
class Sentence:
    """A target sentence with its optional translation and stage-1 chunks."""
    text: str
    translation: str = ""
    chunks: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TimerConfig:
    """Countdown settings for a whole session."""
    enabled: bool = False
    seconds: int = DEFAULT_TIMER_SECONDS


def _parse_enum(enum_cls, value: Any, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"Unknown {name} {value!r}, expected one of: {allowed}")


def _parse_stages(stages: Optional[Iterable[Any]]) -> Tuple[Stage, ...]:
    if not stages:
        return ALL_STAGES
    parsed = set()
    for raw in stages:
        if isinstance(raw, bool):
            raise ConfigurationError(f"Invalid stage {raw!r}")
        try:
            parsed.add(Stage(int(raw)))
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid stage {raw!r}, expected 1, 2 or 3")
    return tuple(sorted(parsed))


@dataclass(frozen=True)
class SessionConfig:
    """Learner configuration, fixed for the lifetime of a session."""
    selected_stages: Tuple[Stage, ...] = ALL_STAGES
    random_order: bool = False
    attempt_limit: int = 0  # 0 = unlimited
    progression_mode: ProgressionMode = ProgressionMode.FOCUS
    timer: TimerConfig = field(default_factory=TimerConfig)
    tts_mode: TTSMode = TTSMode.AFTER_CORRECT

    @classmethod
    def from_raw(
        cls,
        selected_stages: Optional[Iterable[Any]] = None,
        random_order: bool = False,
        attempt_limit: Any = 0,
        progression_mode: Any = ProgressionMode.FOCUS,
        timer_enabled: bool = False,
        timer_seconds: Any = DEFAULT_TIMER_SECONDS,
        tts_mode: Any = TTSMode.AFTER_CORRECT,
    ) -> "SessionConfig":
        """Validate raw learner settings and build a config.

        An empty stage selection means every stage. A missing or non-positive
        timer length falls back to the default length.

        Raises:
            ConfigurationError: if a value cannot be used.
        """
        try:
            limit = int(attempt_limit or 0)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid attempt limit {attempt_limit!r}")
        if limit < 0:
            raise ConfigurationError("Attempt limit must not be negative")

        try:
            seconds = int(timer_seconds or 0)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid timer length {timer_seconds!r}")
        if seconds <= 0:
            seconds = DEFAULT_TIMER_SECONDS

        return cls(
            selected_stages=_parse_stages(selected_stages),
            random_order=bool(random_order),
            attempt_limit=limit,
            progression_mode=_parse_enum(ProgressionMode, progression_mode, "progression mode"),
            timer=TimerConfig(enabled=bool(timer_enabled), seconds=seconds),
            tts_mode=_parse_enum(TTSMode, tts_mode, "TTS mode"),
        )

    def total_items(self, sentence_count: int) -> int:
        """Number of (sentence, stage) items a session over sentence_count sentences has."""
        return sentence_count * len(self.selected_stages)


@dataclass(frozen=True)
class PlacementError:
    """One wrong slot in a submission."""
    position: int
    placed: str
    expected: str


@dataclass(frozen=True)
class AttemptRecord:
    """Outcome of one resolved (sentence, stage) item."""
    sentence_text: str
    stage: Stage
    correct: bool
    attempts_in_stage: int
    hints_used: int  # session total when the item was resolved
    elapsed_seconds: int
    errors: Tuple[PlacementError, ...] = ()
    skipped: bool = False
    submitted_text: str = ""  # last wrong answer, if any
    speech_mode: bool = False


class GrammarKind(Enum):
    """Grammatical constructs recognised by the classifier."""
    TO_INFINITIVE_SUBJECT = "to-infinitive-subject"
    TO_INFINITIVE_OBJECT = "to-infinitive-object"
    TO_INFINITIVE_ADVERB = "to-infinitive-adverb"
    TO_INFINITIVE = "to-infinitive"
    GERUND_SUBJECT = "gerund-subject"
    GERUND_OBJECT = "gerund-object"
    PRESENT_PARTICIPLE = "present-participle"
    PASSIVE = "passive"
    RELATIVE_CLAUSE = "relative-clause"
    POSTPOSITIVE_PARTICIPLE = "postpositive-participle"
    IT_CLEFT = "it-cleft"
    CAUSATIVE = "causative"
    PERCEPTION_VERB = "perception-verb"
    ADVERB_CLAUSE = "adverb-clause"
    PERFECT_TENSE = "perfect-tense"
    COMPARATIVE = "comparative"
    SUPERLATIVE = "superlative"
    AS_AS = "as-as"
    THAT_CLAUSE = "that-clause"
    PARTICIPIAL_CONSTRUCTION = "participial-construction"


@dataclass(frozen=True)
class GrammarStructureMatch:
    """A detected construct and its three hints, gentlest first."""
    kind: GrammarKind
    display_name: str
    hints: Tuple[str, str, str]

    def __post_init__(self):
        if len(self.hints) != 3:
            raise ValueError(f"{self.kind.value} needs exactly 3 hints, got {len(self.hints)}")

    def hint(self, level: int) -> str:
        return self.hints[min(max(level, 0), 2)]


class PairingKind(Enum):
    """Collocation patterns, listed in hint priority order."""
    AS = "as"
    WITH = "with"
    FROM = "from"
    TO = "to"
    OF = "of"
    INTO = "into"
    FOR = "for"
    CORRELATIVE = "correlative"
    COMPARISON = "comparison"
    PREPOSITION = "preposition"


@dataclass(frozen=True)
class PairingPattern:
    """A detected pattern and the word that triggered it (verb, conjunction or preposition)."""
    kind: PairingKind
    matched: Optional[str] = None


@dataclass(frozen=True)
class PairingMatches:
    """Every pairing pattern found in one sentence."""
    patterns: Tuple[PairingPattern, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def get(self, kind: PairingKind) -> Optional[PairingPattern]:
        for pattern in self.patterns:
            if pattern.kind is kind:
                return pattern
        return None

    def primary(self) -> Optional[PairingPattern]:
        """Highest-priority pattern, or None."""
        for kind in PairingKind:
            pattern = self.get(kind)
            if pattern is not None:
                return pattern
        return None


class SubmissionOutcome(Enum):
    """What a submit (or spoken answer) did to the session."""
    REJECTED_INCOMPLETE = "rejected_incomplete"
    CORRECT = "correct"
    WRONG = "wrong"
    LIMIT_REACHED = "limit_reached"
    IGNORED = "ignored"


class WordStatus(Enum):
    """Per-word verdict when comparing a spoken answer with the target."""
    CORRECT = "correct"
    WRONG = "wrong"
    EXTRA = "extra"


@dataclass(frozen=True)
class WordDiff:
    word: str
    status: WordStatus


@dataclass(frozen=True)
class SubmissionResult:
    """Everything the front end needs to react to a submission."""
    outcome: SubmissionOutcome
    message: str = ""
    hint: Optional[str] = None
    record: Optional[AttemptRecord] = None
    errors: Tuple[PlacementError, ...] = ()
    revealed_answer: Optional[str] = None
    attempts_remaining: Optional[int] = None
    advance_after: Optional[float] = None  # seconds before advance() should be called
    speak: Optional[str] = None  # sentence to read aloud
    word_diff: Tuple[WordDiff, ...] = ()


@dataclass(frozen=True)
class StageView:
    """The item currently being practised."""
    sentence_index: int
    sentence_count: int
    stage: Stage
    sentence: Sentence
    correct_order: Tuple[str, ...]
    tiles: Tuple[str, ...]  # shuffled
    progress: float  # 0..1, share of items already resolved
    attempts_in_stage: int
    attempts_remaining: Optional[int]
    can_speak: bool


@dataclass(frozen=True)
class SessionSummary:
    """Final numbers of a finished session."""
    sentences: Tuple[Sentence, ...]
    config: SessionConfig
    results: Tuple[AttemptRecord, ...]
    correct_count: int
    total_items: int
    accuracy: int
    total_attempts: int
    wrong_attempts: int
    hints_used: int
    timed_out: bool = False
    duration_seconds: float = 0.0

    @property
    def title(self) -> str:
        if self.accuracy >= 90:
            return "🏆 Perfect!"
        if self.accuracy >= 70:
            return "🎉 Great job!"
        if self.accuracy >= 50:
            return "💪 You're getting there!"
        return "📚 Keep going!"
