"""Splitting sentences into the reorderable items of each stage."""
import logging
import math
import random
import re
from typing import List, Optional, Sequence

from sweepbot.models.session_models import Sentence, Stage

logger = logging.getLogger(__name__)

PUNCTUATION_RE = re.compile(r"[.,!?]")
WHITESPACE_RE = re.compile(r"\s+")

# Words that mark the end of the subject part in stage 2
VERB_CUES = {
    "is", "are", "was", "were", "has", "have", "had", "do", "does", "did",
    "will", "would", "can", "could", "may", "might", "must", "should",
}


def _words(text: str) -> List[str]:
    return [word for word in WHITESPACE_RE.split(text.strip()) if word]


def _drop_empty(items: Sequence[str]) -> List[str]:
    return [item for item in items if item.strip()]


def auto_chunk(text: str) -> List[str]:
    """Split a sentence into 1-3 phrase chunks by word count. Punctuation is kept."""
    words = _words(text)
    if not words:
        return []

    if len(words) <= 4:
        chunks = [" ".join(words)]
    elif len(words) <= 8:
        mid = math.ceil(len(words) / 2)
        chunks = [" ".join(words[:mid]), " ".join(words[mid:])]
    else:
        third = math.ceil(len(words) / 3)
        chunks = [
            " ".join(words[:third]),
            " ".join(words[third:third * 2]),
            " ".join(words[third * 2:]),
        ]
    return _drop_empty(chunks)


def extract_key_elements(text: str) -> List[str]:
    """Split a sentence into subject part, then the rest in up to two halves."""
    words = _words(PUNCTUATION_RE.sub("", text))
    if len(words) <= 5:
        return words

    verb_index = -1
    for i, word in enumerate(words):
        if word.lower() in VERB_CUES or word.endswith(("s", "ed", "ing")):
            verb_index = i
            break
    if verb_index == -1:
        verb_index = len(words) // 3

    elements = [" ".join(words[:verb_index + 1])]
    rest = words[verb_index + 1:]
    if rest:
        mid = math.ceil(len(rest) / 2)
        elements.append(" ".join(rest[:mid]))
        elements.append(" ".join(rest[mid:]))
    return _drop_empty(elements)


def full_words(text: str) -> List[str]:
    """Every word of the sentence, without . , ! ?"""
    return _words(PUNCTUATION_RE.sub("", text))


def chunks_for(sentence: Sentence, stage: Stage) -> List[str]:
    """Correct order of items for a sentence at a stage.

    Args:
        sentence: The sentence being practised.
        stage: Stage to split for.
    """
    stage = Stage(stage)
    if stage is Stage.CHUNK:
        items = list(sentence.chunks) if sentence.chunks else auto_chunk(sentence.text)
    elif stage is Stage.KEY_ELEMENT:
        items = extract_key_elements(sentence.text)
    else:
        items = full_words(sentence.text)
    return _drop_empty(items)


def make_sentence(text: str, translation: str = "", chunks: Optional[Sequence[str]] = None) -> Sentence:
    """Build a sentence, deriving its stage-1 chunks when none are given."""
    text = WHITESPACE_RE.sub(" ", text).strip()
    derived = _drop_empty(chunks) if chunks else auto_chunk(text)
    return Sentence(text=text, translation=(translation or "").strip(), chunks=tuple(derived))


def shuffle_items(items: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Shuffle items so that the result differs from the input whenever it can."""
    rng = rng or random
    shuffled = list(items)
    if len(set(shuffled)) < 2:
        return shuffled
    while shuffled == list(items):
        rng.shuffle(shuffled)
    return shuffled
