"""Post-session analysis of the result log."""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from sweepbot.models.session_models import AttemptRecord, Sentence, Stage

logger = logging.getLogger(__name__)

PERFECT_BEEN_RE = re.compile(r"\b(has|have|had)\s+been\b")


@dataclass(frozen=True)
class GrammarIssue:
    """A grammar point the learner should review, with examples and tips."""
    category: str
    issue: str
    examples: Tuple[str, ...] = ()
    tips: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DifficultSentence:
    """A sentence that needed many attempts or hints."""
    index: int
    sentence: str
    reason: str
    analysis: str


@dataclass(frozen=True)
class PerformanceReport:
    """Everything the result screen and the exported reports show."""
    accuracy: int
    stage_accuracy: Dict[Stage, int]
    avg_attempts: float
    hints_per_sentence: float
    avg_time_per_item: float
    total_time: int
    strengths: Tuple[str, ...]
    weaknesses: Tuple[str, ...]
    grammar_issues: Tuple[GrammarIssue, ...]
    difficult_sentences: Tuple[DifficultSentence, ...]
    diagnosis: str
    recommendations: Tuple[str, ...] = field(default_factory=tuple)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


STAGE_FEEDBACK = {
    Stage.CHUNK: {
        "strength": "✨ You spot the big meaning units (phrases and clauses) very well!",
        "weak": "🔴 [Chunk recognition] Grouping the sentence into meaning units needs work.",
        "shaky": "🟡 [Chunk recognition] Finding the meaning units is a little unsteady.",
        "issues": (
            GrammarIssue(
                category="Phrases and clauses",
                issue="Practise splitting English sentences into small meaning chunks.",
                examples=(
                    "Subject: The tall boy / Verb: is playing / Place: in the park",
                    "Time: Yesterday / Subject: I / Verb: went / Place: to school",
                ),
                tips=(
                    "Read a sentence as \"who / does what / where / when\"",
                    "A preposition (in, on, at, for, with) usually starts a new chunk",
                    "Conjunctions and relative words (that, which, who, when, because) are boundaries too",
                ),
            ),
        ),
    },
    Stage.KEY_ELEMENT: {
        "strength": "✨ You understand the basic English order (subject-verb-object)!",
        "weak": "🔴 [Basic word order] The core S + V + O structure gets mixed up.",
        "shaky": "🟡 [Basic word order] The word order is sometimes confusing.",
        "issues": (
            GrammarIssue(
                category="Basic word order (SVO)",
                issue="English always follows \"subject + verb + object\"!",
                examples=(
                    "I eat an apple (not: I an apple eat)",
                    "She read a book (not: She a book read)",
                    "⚠️ Many languages are SOV, English is SVO!",
                ),
                tips=(
                    "Think \"who (S) + does (V) + what (O)\" first",
                    "Find the verb: the subject is before it, the object after it",
                    "Do not copy the word order of your first language",
                ),
            ),
        ),
    },
    Stage.FULL_WORD: {
        "strength": "✨ Great detailed word order! Articles and prepositions are in the right places!",
        "weak": "🔴 [Detailed order] Articles, prepositions and modifiers are often misplaced.",
        "shaky": "🟡 [Detailed order] Articles or prepositions are sometimes misplaced.",
        "issues": (
            GrammarIssue(
                category="Articles and modifiers",
                issue="In English, modifiers come before the noun!",
                examples=(
                    "Article + adjective + noun: a beautiful flower (not: flower beautiful a)",
                    "Possessive + adjective + noun: my old car",
                    "Adverb + adjective: very important",
                ),
                tips=(
                    "The article (a/an/the) comes first before a noun!",
                    "The adjective goes right before the noun!",
                    "Adverbs sit flexibly before or after adjectives and verbs",
                ),
            ),
            GrammarIssue(
                category="Prepositional phrases",
                issue="Prepositional phrases (in the park, on the table) usually go at the end!",
                examples=(
                    "I study English in my room.",
                    "She lives in Seoul with her family.",
                    "With several phrases: place first, then time",
                ),
                tips=(
                    "Put prepositional phrases at the end of the sentence",
                    "Place before time: at school yesterday",
                ),
            ),
        ),
    },
}

HINT_HABIT_ISSUE = GrammarIssue(
    category="Study habits",
    issue="You lean on hints a lot. Give yourself time to think first.",
    tips=(
        "Try the first 30 seconds without a hint",
        "Mistakes are fine, that is how you learn!",
        "Before opening a hint, ask yourself once more: \"could this be right?\"",
    ),
)

GUESSING_ISSUE = GrammarIssue(
    category="Problem solving",
    issue="You tend to guess and retry many times.",
    tips=(
        "Understand the meaning of the whole sentence before arranging",
        "Picture the \"subject-verb-object-adverbial\" frame first",
        "Do not rush, think for 2-3 seconds before you start",
    ),
)

RECOMMENDATIONS = (
    (90, (
        "🎯 [Next step] Try longer sentences with more complex structures!",
        "⏱️ [Speed] Set a shorter timer to build quick reactions!",
        "📝 [Advanced] Level up with relative clauses and participial constructions!",
    )),
    (70, (
        "📚 [Review] Practise only the sentences you got wrong.",
        "🔄 [Repeat] Reviewing a sentence three days in a row moves it to long-term memory.",
        "✍️ [Active learning] Write similar sentences of your own.",
    )),
    (50, (
        "📖 [Basics] Review the five basic sentence patterns (SV, SVC, SVO, SVOO, SVOC).",
        "🧩 [Step by step] Master stage 1 (chunks) before moving on.",
        "👀 [Exposure] Read plenty of correct English sentences to build a feel for word order.",
    )),
    (0, (
        "🆘 [From the basics] First make sure the SVO word order is completely clear.",
        "📝 [Slowly] Select only stage 1 and perfect the chunk order first.",
        "🤝 [Ask for help] Ask your teacher to explain basic word order again.",
        "💪 [Don't give up] Everyone finds it hard at first! Keep at it and you will improve!",
    )),
)

DIAGNOSES = (
    (90, "🏆 Word order master! You are ready for real writing practice!"),
    (70, "👍 Solid basics! A little more practice and it will be perfect!"),
    (50, "📈 You are building the foundations of English word order. Keep practising!"),
    (0, "🌱 English word order still feels new. Let's build it up step by step!"),
)


def _by_band(accuracy: int, table):
    for threshold, value in table:
        if accuracy >= threshold:
            return value
    return table[-1][1]


def _difficulty_analysis(text: str) -> str:
    if len(text.split(" ")) > 10:
        return "Long sentence - practise chunking"
    if " that " in text or " which " in text:
        return "Contains a relative clause - practise separating clauses"
    if " to " in text:
        return "Contains a to-infinitive - spot the to + verb chunk"
    if PERFECT_BEEN_RE.search(text):
        return "Perfect tense - learn the order of tense forms"
    return "Review the basic word order"


def find_difficult_sentences(results: Sequence[AttemptRecord], sentences: Sequence[Sentence]) -> List[DifficultSentence]:
    """Sentences with more than 3 attempts or more than 2 hints summed over their stages."""
    totals: Dict[str, List[int]] = {}
    for record in results:
        attempts_hints = totals.setdefault(record.sentence_text, [0, 0])
        attempts_hints[0] += record.attempts_in_stage
        attempts_hints[1] += record.hints_used

    difficult = []
    for index, sentence in enumerate(sentences):
        if sentence.text not in totals:
            continue
        attempts, hints = totals[sentence.text]
        if attempts <= 3 and hints <= 2:
            continue
        reasons = []
        if attempts > 3:
            reasons.append(f"{attempts} attempts")
        if hints > 2:
            reasons.append(f"{hints} hints")
        difficult.append(DifficultSentence(
            index=index,
            sentence=sentence.text,
            reason=", ".join(reasons),
            analysis=_difficulty_analysis(sentence.text),
        ))
    return difficult


def analyze_performance(
    results: Sequence[AttemptRecord],
    sentences: Sequence[Sentence],
    selected_stages: Sequence[Stage],
    hints_used: int,
) -> PerformanceReport:
    """Aggregate a finished result log. Pure: the same input always gives the same report.

    Args:
        results: The session's result log.
        sentences: Sentences in the order they were practised.
        selected_stages: Stages the session used.
        hints_used: Session hint counter.
    """
    selected = [Stage(stage) for stage in selected_stages]
    total_items = len(sentences) * len(selected)
    correct = sum(1 for record in results if record.correct)
    accuracy = int(_round_half_up(correct / total_items * 100)) if total_items > 0 else 0

    raw_stage_accuracy: Dict[Stage, float] = {}
    for stage in Stage:
        stage_results = [record for record in results if record.stage == stage]
        if stage_results:
            raw_stage_accuracy[stage] = sum(1 for r in stage_results if r.correct) / len(stage_results) * 100
        else:
            raw_stage_accuracy[stage] = 100.0

    total_time = sum(record.elapsed_seconds for record in results)
    avg_time = _round_half_up(total_time / len(results), 1) if results else 0.0
    avg_attempts = _round_half_up(sum(r.attempts_in_stage for r in results) / len(results), 1) if results else 1.0
    hints_per_sentence = _round_half_up(hints_used / len(sentences), 1) if sentences else 0.0

    strengths: List[str] = []
    weaknesses: List[str] = []
    grammar_issues: List[GrammarIssue] = []
    recommendations: List[str] = []

    for stage in selected:
        stage_accuracy = raw_stage_accuracy[stage]
        feedback = STAGE_FEEDBACK[stage]
        if stage_accuracy >= 90:
            strengths.append(feedback["strength"])
        elif stage_accuracy < 70:
            weaknesses.append(feedback["weak"])
            grammar_issues.extend(feedback["issues"])
        else:
            weaknesses.append(feedback["shaky"])

    if hints_per_sentence > 2:
        weaknesses.append(f"🔴 [Hint dependence] {hints_per_sentence} hints per sentence on average")
        grammar_issues.append(HINT_HABIT_ISSUE)
    elif hints_per_sentence < 0.5 and accuracy >= 80:
        strengths.append("✨ Solved almost without hints! Great self-directed learning!")

    if avg_attempts > 2.5:
        weaknesses.append(f"🔴 [Many retries] {avg_attempts} attempts on average")
        grammar_issues.append(GUESSING_ISSUE)
    elif avg_attempts <= 1.2 and accuracy >= 80:
        strengths.append("✨ Right on the first try almost every time! Great feel for word order!")

    if avg_time > 45 and accuracy < 70:
        weaknesses.append("🟡 [Slow] Long thinking time but low accuracy.")
        recommendations.append("Memorise the basic word-order rules and practise them as patterns.")
    elif avg_time < 15 and accuracy >= 85:
        strengths.append("✨ Fast and accurate! Your word order is automatic!")

    recommendations.extend(_by_band(accuracy, RECOMMENDATIONS))

    report = PerformanceReport(
        accuracy=accuracy,
        stage_accuracy={stage: int(_round_half_up(raw_stage_accuracy[stage])) for stage in Stage},
        avg_attempts=avg_attempts,
        hints_per_sentence=hints_per_sentence,
        avg_time_per_item=avg_time,
        total_time=total_time,
        strengths=tuple(strengths),
        weaknesses=tuple(weaknesses),
        grammar_issues=tuple(grammar_issues),
        difficult_sentences=tuple(find_difficult_sentences(results, sentences)),
        diagnosis=_by_band(accuracy, DIAGNOSES),
        recommendations=tuple(recommendations),
    )
    logger.debug(f"Analyzed {len(results)} records: accuracy {accuracy}%")
    return report
