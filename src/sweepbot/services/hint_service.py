"""Choosing the hint shown after a wrong answer or on request."""
import logging
from typing import Optional, Sequence

from sweepbot.models.session_models import Stage
from sweepbot.services.grammar_classifier import primary_structure
from sweepbot.services.pairing_detector import detect_pairings, pairing_hint

logger = logging.getLogger(__name__)

WRONG_ANSWER_HEADER = "❌ Think again!"
DIVIDER = "──────────"


def hint_level(attempts_in_stage: int) -> int:
    """Escalation level for the nth wrong attempt: 0, 1, then 2 for good."""
    return max(0, min(attempts_in_stage - 1, 2))


def first_error_index(current_order: Sequence[str], correct_order: Sequence[str]) -> int:
    """Index of the first slot that differs, or -1."""
    for i, item in enumerate(current_order):
        if i >= len(correct_order) or item != correct_order[i]:
            return i
    return -1


def basic_order_hint(error_index: int, stage: Optional[Stage]) -> str:
    """Gentlest fallback, based on where the first mistake is."""
    if error_index == 0:
        return "💡 Pairing hint\nA sentence starts with its subject!\n→ Who or what comes first."
    if stage == Stage.CHUNK:
        return "💡 Chunk hint\nSplit the sentence into subject part + verb part + the rest!"
    if stage == Stage.KEY_ELEMENT:
        return "💡 Core order hint\nSubject → verb → object/complement!\n→ English is an SVO language!"
    if stage == Stage.FULL_WORD:
        return "💡 Word order hint\nArticle (a/the) + adjective + noun!\n→ Modifiers go before the noun!"
    return "💡 Look for the pairs!"


def detailed_order_hint(correct_order: Sequence[str]) -> str:
    """Second-level fallback: names the first item of the answer."""
    first = correct_order[0] if correct_order else "..."
    return f"💡 Word order hint\nHow the sentence begins:\n→ \"{first}\" must come first!"


def structural_hint(correct_order: Sequence[str]) -> str:
    """Last fallback: the first four items labelled subject, verb, object."""
    labels = []
    for i, item in enumerate(correct_order[:4]):
        if i == 0:
            labels.append(f"[S] {item}")
        elif i == 1:
            labels.append(f"[V] {item}")
        else:
            labels.append(f"[O] {item}")
    return "💡 Structure hint\nThe answer starts with:\n→ " + " + ".join(labels) + " ..."


class HintService:
    """Combines grammar and pairing detection into one hint string."""

    def select_hint(
        self,
        current_order: Sequence[str],
        correct_order: Sequence[str],
        sentence_text: str,
        attempts_in_stage: int,
        stage: Optional[Stage] = None,
    ) -> str:
        """Hint for a wrong submission.

        Args:
            current_order: Items as the learner placed them.
            correct_order: Items in the right order.
            sentence_text: The target sentence.
            attempts_in_stage: Attempts made on this item, including the wrong one just submitted.
            stage: Current stage, used by the gentlest fallback.
        """
        level = hint_level(attempts_in_stage)
        structure = primary_structure(sentence_text)
        grammar = structure.hint(level) if structure else None
        pairing = pairing_hint(detect_pairings(sentence_text))

        if level == 0:
            if pairing:
                body = pairing
            elif grammar:
                body = grammar
            else:
                body = basic_order_hint(first_error_index(current_order, correct_order), stage)
        elif level == 1:
            if grammar:
                body = grammar + (f"\n\n{DIVIDER}\n{pairing}" if pairing else "")
            elif pairing:
                body = pairing
            else:
                body = detailed_order_hint(correct_order)
        else:
            parts = [part for part in (grammar, pairing) if part]
            body = f"\n\n{DIVIDER}\n".join(parts) if parts else structural_hint(correct_order)

        logger.debug(f"Hint level {level} for {sentence_text!r}")
        return f"{WRONG_ANSWER_HEADER}\n\n{body}"

    def command_hint(self, hints_used: int, correct_order: Sequence[str], sentence_text: str) -> str:
        """Hint for an explicit hint request. Levels cycle 0, 1, 2, 0, ... with each request.

        Args:
            hints_used: Session hint counter, already including this request.
            correct_order: Items in the right order.
            sentence_text: The target sentence.
        """
        level = (hints_used - 1) % 3
        structure = primary_structure(sentence_text)
        pairing = pairing_hint(detect_pairings(sentence_text))
        first = correct_order[0] if correct_order else "..."
        second = correct_order[1] if len(correct_order) > 1 else "..."

        if level == 0:
            if structure:
                return f"📘 Grammar hint\n{structure.hint(0)}"
            if pairing:
                return pairing
            return "📘 Word order hint\nThis sentence is built as subject + verb + the rest!"

        if level == 1:
            if structure:
                text = f"📗 Detailed hint\n{structure.hint(1)}"
                return text + (f"\n\n{DIVIDER}\n{pairing}" if pairing else "")
            if pairing:
                return pairing
            return f"📗 Word order hint\nThis sentence starts with \"{first}\"!"

        if structure:
            text = f"📙 Structure hint\n{structure.hint(2)}"
            return text + (f"\n\n{DIVIDER}\n{pairing}" if pairing else "")
        if pairing:
            return f"{pairing}\n\n📙 Sentence start: {first} → {second}"
        return f"📙 Structure hint\nThe answer starts with:\n→ {first} + {second} + ..."
