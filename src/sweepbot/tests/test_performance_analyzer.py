"""Tests for the post-session analysis."""
from sweepbot.models.session_models import AttemptRecord, Sentence, Stage
from sweepbot.services.performance_analyzer import (
    GUESSING_ISSUE,
    HINT_HABIT_ISSUE,
    STAGE_FEEDBACK,
    analyze_performance,
    find_difficult_sentences,
)

SENTENCES = [
    Sentence(text="I like green apples."),
    Sentence(text="She reads a book every single day."),
]


def record(text: str, stage: Stage, correct: bool = True, attempts: int = 1, hints: int = 0,
           elapsed: int = 10) -> AttemptRecord:
    return AttemptRecord(
        sentence_text=text,
        stage=stage,
        correct=correct,
        attempts_in_stage=attempts,
        hints_used=hints,
        elapsed_seconds=elapsed,
        skipped=not correct,
    )


def test_empty_session():
    report = analyze_performance([], [], [Stage.CHUNK], 0)
    assert report.accuracy == 0
    assert report.avg_attempts == 1.0
    assert report.avg_time_per_item == 0.0
    assert report.hints_per_sentence == 0.0
    assert report.stage_accuracy == {Stage.CHUNK: 100, Stage.KEY_ELEMENT: 100, Stage.FULL_WORD: 100}
    assert report.difficult_sentences == ()
    assert report.diagnosis.startswith("🌱")
    assert len(report.recommendations) == 4


def test_perfect_session():
    results = [record(s.text, Stage.CHUNK, elapsed=8) for s in SENTENCES]
    report = analyze_performance(results, SENTENCES, [Stage.CHUNK], 0)
    assert report.accuracy == 100
    assert report.stage_accuracy[Stage.CHUNK] == 100
    assert report.total_time == 16
    assert report.avg_time_per_item == 8.0
    assert STAGE_FEEDBACK[Stage.CHUNK]["strength"] in report.strengths
    assert any("without hints" in s for s in report.strengths)
    assert any("first try" in s for s in report.strengths)
    assert any("Fast and accurate" in s for s in report.strengths)
    assert report.weaknesses == ()
    assert report.diagnosis.startswith("🏆")
    assert len(report.recommendations) == 3


def test_weak_stage_adds_grammar_issues():
    results = [
        record(SENTENCES[0].text, Stage.CHUNK),
        record(SENTENCES[1].text, Stage.CHUNK),
        record(SENTENCES[0].text, Stage.FULL_WORD, correct=False, attempts=2),
        record(SENTENCES[1].text, Stage.FULL_WORD, correct=False, attempts=2),
    ]
    report = analyze_performance(results, SENTENCES, [Stage.CHUNK, Stage.FULL_WORD], 0)
    assert report.accuracy == 50
    assert report.stage_accuracy[Stage.FULL_WORD] == 0
    assert STAGE_FEEDBACK[Stage.FULL_WORD]["weak"] in report.weaknesses
    assert [issue.category for issue in report.grammar_issues] == ["Articles and modifiers", "Prepositional phrases"]
    assert report.diagnosis.startswith("📈")


def test_shaky_stage():
    results = [record(SENTENCES[0].text, Stage.KEY_ELEMENT, correct=i < 4) for i in range(5)]
    report = analyze_performance(results, SENTENCES[:1], [Stage.KEY_ELEMENT], 0)
    assert report.stage_accuracy[Stage.KEY_ELEMENT] == 80
    assert STAGE_FEEDBACK[Stage.KEY_ELEMENT]["shaky"] in report.weaknesses


def test_hint_dependence_and_guessing():
    results = [record(SENTENCES[0].text, Stage.CHUNK, attempts=4, hints=5)]
    report = analyze_performance(results, SENTENCES[:1], [Stage.CHUNK], 5)
    assert report.hints_per_sentence == 5.0
    assert report.avg_attempts == 4.0
    assert HINT_HABIT_ISSUE in report.grammar_issues
    assert GUESSING_ISSUE in report.grammar_issues


def test_slow_and_inaccurate_adds_pattern_recommendation():
    results = [
        record(SENTENCES[0].text, Stage.CHUNK, correct=False, elapsed=50),
        record(SENTENCES[1].text, Stage.CHUNK, correct=False, elapsed=60),
    ]
    report = analyze_performance(results, SENTENCES, [Stage.CHUNK], 0)
    assert report.avg_time_per_item == 55.0
    assert report.recommendations[0].startswith("Memorise the basic word-order rules")
    assert len(report.recommendations) == 5


def test_averages_round_half_up():
    results = [
        record(SENTENCES[0].text, Stage.CHUNK, attempts=1),
        record(SENTENCES[1].text, Stage.CHUNK, attempts=2),
        record(SENTENCES[1].text, Stage.KEY_ELEMENT, attempts=2),
        record(SENTENCES[0].text, Stage.KEY_ELEMENT, attempts=2),
    ]
    report = analyze_performance(results, SENTENCES, [Stage.CHUNK, Stage.KEY_ELEMENT], 1)
    assert report.avg_attempts == 1.8
    assert report.hints_per_sentence == 0.5


def test_find_difficult_sentences():
    results = [
        record(SENTENCES[0].text, Stage.CHUNK, attempts=2),
        record(SENTENCES[0].text, Stage.FULL_WORD, attempts=3, hints=3),
        record(SENTENCES[1].text, Stage.CHUNK, attempts=1),
    ]
    difficult = find_difficult_sentences(results, SENTENCES)
    assert len(difficult) == 1
    assert difficult[0].index == 0
    assert difficult[0].reason == "5 attempts, 3 hints"
    assert difficult[0].analysis == "Review the basic word order"


def test_difficulty_analysis_notes():
    long_text = "The students who study hard every day will pass the final exam easily."
    relative = "This is the book that I read."
    infinitive = "I want to sleep now."
    for text, note in [
        (long_text, "Long sentence"),
        (relative, "relative clause"),
        (infinitive, "to-infinitive"),
    ]:
        difficult = find_difficult_sentences([record(text, Stage.CHUNK, attempts=4)], [Sentence(text=text)])
        assert note in difficult[0].analysis


def test_analysis_is_repeatable():
    results = [record(SENTENCES[0].text, Stage.CHUNK, correct=False, attempts=3, hints=1)]
    first = analyze_performance(results, SENTENCES, [Stage.CHUNK], 1)
    second = analyze_performance(results, SENTENCES, [Stage.CHUNK], 1)
    assert first == second
