"""Service for building result reports and wrong-sentence lists."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sweepbot.config import settings
from sweepbot.models.session_models import AttemptRecord, PlacementError, Sentence, SessionSummary, Stage
from sweepbot.services.performance_analyzer import PerformanceReport, analyze_performance

logger = logging.getLogger(__name__)

ANALYSIS_QUESTIONS = (
    "1. Which word-order patterns does this learner get wrong most often?",
    "2. Which grammar points should they study (e.g. relative clauses, to-infinitives, prepositional phrases)?",
    "3. Suggest 3 practice sentences that target those weak points.",
    "4. What study plan would help this learner improve their English word order?",
)


def stage_icon(accuracy: int) -> str:
    if accuracy >= 80:
        return "✅"
    if accuracy >= 50:
        return "⚠️"
    return "❌"


class ReportService:
    """Turns a finished session into the texts the learner can read or download."""

    def __init__(self, summary: SessionSummary, report: Optional[PerformanceReport] = None,
                 now: Optional[datetime] = None):
        self.summary = summary
        self.report = report or analyze_performance(
            summary.results, summary.sentences, summary.config.selected_stages, summary.hints_used
        )
        self.now = now or datetime.now()

    @property
    def filename(self) -> str:
        return f"sweep_result_{self.now.strftime('%Y%m%d')}.md"

    def _records_for(self, sentence: Sentence) -> List[AttemptRecord]:
        return [record for record in self.summary.results if record.sentence_text == sentence.text]

    def _stage_table(self) -> Dict[Stage, Tuple[int, int, int]]:
        """(correct, total, accuracy) per selected stage; 0% when the stage has no records."""
        table = {}
        for stage in self.summary.config.selected_stages:
            records = [record for record in self.summary.results if record.stage == stage]
            correct = sum(1 for record in records if record.correct)
            accuracy = int(correct / len(records) * 100 + 0.5) if records else 0
            table[stage] = (correct, len(records), accuracy)
        return table

    def wrong_sentences(self) -> List[Sentence]:
        """Sentences with at least one wrong or skipped record, without duplicates, in session order."""
        wrong_texts = {
            record.sentence_text for record in self.summary.results if not record.correct or record.skipped
        }
        return [sentence for sentence in self.summary.sentences if sentence.text in wrong_texts]

    def wrong_sentences_text(self) -> str:
        """The wrong sentences in the same line format the sentence input accepts."""
        return "\n".join(sentence.text for sentence in self.wrong_sentences())

    def markdown(self) -> str:
        """Full report for download, ending with prompts for further analysis."""
        summary = self.summary
        stages = ", ".join(str(int(stage)) for stage in summary.config.selected_stages)
        lines = [
            "# Sweep result",
            "",
            f"- Date: {self.now.strftime('%Y.%m.%d')}",
            f"- Sentences: {len(summary.sentences)}",
            f"- Stages: {stages}",
            f"- Accuracy: {summary.accuracy}% ({summary.correct_count}/{summary.total_items})",
            f"- Wrong attempts: {summary.wrong_attempts}",
            f"- Hints used: {summary.hints_used}",
        ]
        if summary.timed_out:
            lines.append("- Finished by the timer")

        lines += ["", "## Stages", "", "| Stage | Correct | Accuracy |", "| --- | --- | --- |"]
        for stage, (correct, total, accuracy) in self._stage_table().items():
            lines.append(f"| {int(stage)}. {stage.label} | {correct}/{total} | {accuracy}% |")

        lines += ["", "## Sentences", ""]
        for i, sentence in enumerate(summary.sentences, start=1):
            records = self._records_for(sentence)
            if not records:
                icon = "❓"
            elif all(record.correct and not record.skipped for record in records):
                icon = "✅"
            else:
                icon = "❌"
            lines.append(f"### {icon} {i}. {sentence.text}")
            if sentence.translation:
                lines.append(f"_{sentence.translation}_")
            for record in records:
                if record.skipped:
                    lines.append(f"- stage {int(record.stage)}: skipped (limit)")
                else:
                    lines.append(
                        f"- stage {int(record.stage)}: correct "
                        f"({record.attempts_in_stage} attempts, {record.elapsed_seconds} s)"
                    )
                if record.submitted_text:
                    lines.append(f"  - wrong answer: {record.submitted_text}")
            lines.append("")

        wrong = self.wrong_sentences()
        if wrong:
            lines += ["## Sentences to review", ""]
            for sentence in wrong:
                lines.append(f"- {sentence.text}" + (f" ({sentence.translation})" if sentence.translation else ""))
            lines.append("")

        lines += ["## Questions for further analysis", ""]
        lines += list(ANALYSIS_QUESTIONS)
        return "\n".join(lines) + "\n"

    def _wrong_answer_groups(self) -> List[Tuple[str, AttemptRecord, List[PlacementError]]]:
        groups: Dict[str, Tuple[AttemptRecord, List[PlacementError]]] = {}
        for record in self.summary.results:
            if record.correct and not record.errors:
                continue
            first, errors = groups.setdefault(record.sentence_text, (record, []))
            for error in record.errors:
                if error not in errors:
                    errors.append(error)
        return [(text, first, errors) for text, (first, errors) in groups.items()]

    def plain_text(self) -> str:
        """Detailed report for chat, used when the document cannot be sent."""
        summary, report = self.summary, self.report
        total_hints = sum(record.hints_used for record in summary.results)
        lines = [
            f"{summary.title}",
            "",
            "📊 Statistics",
            f"Accuracy: {report.accuracy}% ({summary.correct_count}/{summary.total_items})",
            f"Average attempts: {report.avg_attempts}",
            f"Hints: {total_hints}",
            f"Average time: {report.avg_time_per_item} s",
            "",
            report.diagnosis,
            "",
            "📈 Stages",
        ]
        for stage in summary.config.selected_stages:
            accuracy = report.stage_accuracy[stage]
            lines.append(f"{stage_icon(accuracy)} {int(stage)}. {stage.label}: {accuracy}%")

        if report.strengths:
            lines += ["", "💪 Strengths"] + list(report.strengths)
        if report.weaknesses:
            lines += ["", "🔍 To work on"] + list(report.weaknesses)
        if report.grammar_issues:
            lines += ["", "📘 Grammar to review"]
            for issue in report.grammar_issues:
                lines.append(f"• {issue.category}: {issue.issue}")
                lines += [f"  - {tip}" for tip in issue.tips]

        groups = self._wrong_answer_groups()
        if groups:
            lines += ["", "❌ Wrong answers"]
            for text, first, errors in groups:
                status = "skipped" if first.skipped else f"{first.attempts_in_stage} attempts"
                lines.append(f"• {text} (stage {int(first.stage)}, {status})")
                if first.submitted_text:
                    lines.append(f"  Your answer: {first.submitted_text}")
                for error in errors:
                    lines.append(f"  {error.placed} → {error.expected}")

        if report.difficult_sentences:
            lines += ["", "🧗 Difficult sentences"]
            for item in report.difficult_sentences:
                lines.append(f"• {item.index + 1}. {item.sentence} ({item.reason})")
                lines.append(f"  {item.analysis}")

        lines += ["", "🎯 Recommendations"] + list(report.recommendations)
        return "\n".join(lines)

    def write_markdown(self, directory: Optional[Path] = None) -> Path:
        """Save the markdown report and return its path."""
        directory = directory or settings.paths.reports_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.filename
        path.write_text(self.markdown(), encoding="utf-8")
        logger.info(f"Report written to {path}")
        return path
