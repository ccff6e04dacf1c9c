"""Tests for result reports."""
import random
from datetime import datetime

import pytest

from sweepbot.models.session_models import SessionConfig, Stage
from sweepbot.services.chunker import make_sentence
from sweepbot.services.report_service import ANALYSIS_QUESTIONS, ReportService, stage_icon
from sweepbot.services.session_service import SessionController

FOX = "The quick brown fox jumps over the lazy dog."
APPLES = "I like green apples."
NOW = datetime(2026, 3, 5, 14, 30)


@pytest.fixture
def finished_summary():
    """Fox sentence missed at the attempt limit, apples sentence solved."""
    sentences = [make_sentence(FOX, "빠른 갈색 여우가 게으른 개를 뛰어넘는다."), make_sentence(APPLES)]
    config = SessionConfig(selected_stages=(Stage.CHUNK,), attempt_limit=1)
    controller = SessionController(sentences, config, clock=lambda: 0.0, rng=random.Random(3))
    controller.start()
    controller.submit(list(reversed(controller.current_view().correct_order)))
    controller.skip()
    controller.submit(list(controller.current_view().correct_order))
    controller.advance()
    return controller.summary()


@pytest.fixture
def report_service(finished_summary) -> ReportService:
    return ReportService(finished_summary, now=NOW)


def test_stage_icon():
    assert stage_icon(100) == "✅"
    assert stage_icon(80) == "✅"
    assert stage_icon(50) == "⚠️"
    assert stage_icon(49) == "❌"


def test_filename(report_service: ReportService):
    assert report_service.filename == "sweep_result_20260305.md"


def test_wrong_sentences(report_service: ReportService):
    assert [sentence.text for sentence in report_service.wrong_sentences()] == [FOX]
    assert report_service.wrong_sentences_text() == FOX


def test_markdown(report_service: ReportService):
    text = report_service.markdown()
    assert text.startswith("# Sweep result\n")
    assert "- Date: 2026.03.05" in text
    assert "- Stages: 1" in text
    assert "- Accuracy: 50% (1/2)" in text
    assert "- Finished by the timer" not in text
    assert "| 1. Chunks | 1/2 | 50% |" in text
    assert f"### ❌ 1. {FOX}" in text
    assert "_빠른 갈색 여우가 게으른 개를 뛰어넘는다._" in text
    assert "- stage 1: skipped (limit)" in text
    assert "  - wrong answer: the lazy dog. fox jumps over The quick brown" in text
    assert f"### ✅ 2. {APPLES}" in text
    assert "- stage 1: correct (1 attempts, 0 s)" in text
    assert "## Sentences to review" in text
    assert text.rstrip().endswith(ANALYSIS_QUESTIONS[-1])


def test_markdown_for_timed_out_session():
    controller = SessionController([make_sentence(FOX), make_sentence(APPLES)], clock=lambda: 0.0)
    controller.start()
    text = ReportService(controller.expire(), now=NOW).markdown()
    assert "- Finished by the timer" in text
    assert f"### ❓ 1. {FOX}" in text
    assert "| 2. Key elements | 0/0 | 0% |" in text
    assert "## Sentences to review" not in text


def test_plain_text(report_service: ReportService):
    text = report_service.plain_text()
    assert text.startswith("💪 You're getting there!")
    assert "Accuracy: 50% (1/2)" in text
    assert "⚠️ 1. Chunks: 50%" in text
    assert "❌ Wrong answers" in text
    assert f"• {FOX} (stage 1, skipped)" in text
    assert "  the lazy dog. → The quick brown" in text
    assert "🎯 Recommendations" in text


def test_write_markdown(report_service: ReportService, tmp_path):
    path = report_service.write_markdown(tmp_path / "reports")
    assert path == tmp_path / "reports" / "sweep_result_20260305.md"
    assert path.read_text(encoding="utf-8") == report_service.markdown()
