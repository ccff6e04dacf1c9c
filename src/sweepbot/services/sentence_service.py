"""Service for entering practice sentences."""
import logging
import re
from typing import List, Optional, Sequence

from deep_translator import GoogleTranslator

from sweepbot.config import settings
from sweepbot.exceptions import ValidationError
from sweepbot.models.session_models import Sentence
from sweepbot.services.chunker import full_words, make_sentence

logger = logging.getLogger(__name__)

SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+")

DEMO_SENTENCES = (
    ("The quick brown fox jumps over the lazy dog.",
     ("The quick brown fox", "jumps", "over the lazy dog")),
    ("She has been studying English for three years.",
     ("She", "has been studying", "English", "for three years")),
    ("I want to become a doctor in the future.",
     ("I", "want to become", "a doctor", "in the future")),
    ("The book that I bought yesterday is very interesting.",
     ("The book", "that I bought yesterday", "is", "very interesting")),
    ("Learning a new language requires patience and practice.",
     ("Learning a new language", "requires", "patience and practice")),
)


def split_sentences(line: str) -> List[str]:
    """Split one line at terminal punctuation; a line without any is one sentence."""
    found = SENTENCE_RE.findall(line)
    if not found:
        found = [line]
    return [s.strip() for s in found if s.strip()]


def translate(text: str) -> str:
    """Machine-translate a sentence; empty string when the translator is unreachable."""
    try:
        translator = GoogleTranslator(
            source=settings.content.source_language,
            target=settings.content.translation_language,
        )
        translation = translator.translate(text)
        logger.info(f"Translation generated for sentence: {text}, translation: {translation}")
        return translation or ""
    except Exception as e:
        logger.error(f"Error generating translation for sentence: {text}, error: {e}")
        return ""


def parse_sentences(
    text: str,
    translations: str = "",
    existing: Sequence[Sentence] = (),
    auto_translate: Optional[bool] = None,
) -> List[Sentence]:
    """Turn pasted text into new sentences.

    Every line may hold several sentences. A translation line is attached by
    index, but only when its line produced exactly one sentence. Sentences
    already in existing and sentences without a single word are skipped.

    Args:
        text: English sentences, one or more per line.
        translations: Translations, one per line.
        existing: Sentences already in the list.
        auto_translate: Fill missing translations with the translator. Defaults to AUTO_TRANSLATE.

    Raises:
        ValidationError: if the text holds no sentence with words.
    """
    if auto_translate is None:
        auto_translate = settings.content.auto_translate

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        raise ValidationError("Enter at least one English sentence!")
    translation_lines = [line.strip() for line in translations.splitlines() if line.strip()]

    seen = {sentence.text for sentence in existing}
    added: List[Sentence] = []
    usable = 0
    for index, line in enumerate(lines):
        parts = split_sentences(line)
        translation = translation_lines[index] if len(parts) == 1 and index < len(translation_lines) else ""
        for part in parts:
            if not full_words(part):
                logger.debug(f"Skipping sentence without words: {part!r}")
                continue
            usable += 1
            sentence = make_sentence(part, translation)
            if sentence.text in seen:
                logger.debug(f"Skipping duplicate sentence: {sentence.text}")
                continue
            if auto_translate and not sentence.translation:
                sentence = make_sentence(sentence.text, translate(sentence.text), sentence.chunks)
            seen.add(sentence.text)
            added.append(sentence)

    if not usable:
        raise ValidationError("Enter at least one English sentence!")

    logger.info(f"Parsed {len(added)} new sentences from {len(lines)} lines")
    return added


def demo_sentences() -> List[Sentence]:
    """Built-in practice set with curated chunks."""
    return [make_sentence(text, chunks=chunks) for text, chunks in DEMO_SENTENCES]
