"""Tests for sentence chunking."""
import random

import pytest
from faker import Faker

from sweepbot.models.session_models import Sentence, Stage
from sweepbot.services.chunker import (
    auto_chunk,
    chunks_for,
    extract_key_elements,
    full_words,
    make_sentence,
    shuffle_items,
)

fake = Faker()


def test_auto_chunk_short_sentence_is_one_chunk():
    """Up to four words stay together."""
    assert auto_chunk("I like green apples.") == ["I like green apples."]


def test_auto_chunk_medium_sentence_splits_in_half():
    """Five to eight words split in two, the first half rounded up."""
    assert auto_chunk("She reads a book every single day.") == ["She reads a book", "every single day."]


def test_auto_chunk_long_sentence_splits_in_thirds():
    """Nine or more words split in three."""
    chunks = auto_chunk("The quick brown fox jumps over the lazy dog.")
    assert chunks == ["The quick brown", "fox jumps over", "the lazy dog."]


def test_auto_chunk_collapses_whitespace():
    assert auto_chunk("  I   like  apples. ") == ["I like apples."]


def test_auto_chunk_empty():
    assert auto_chunk("   ") == []


def test_extract_key_elements_short_sentence_returns_words():
    """Five words or fewer come back word by word, without punctuation."""
    assert extract_key_elements("I like green apples.") == ["I", "like", "green", "apples"]


def test_extract_key_elements_splits_at_verb_cue():
    """The subject part ends at the first verb cue, the rest splits in two."""
    elements = extract_key_elements("My little brother will visit the old museum tomorrow.")
    assert elements == ["My little brother will", "visit the old", "museum tomorrow"]


def test_extract_key_elements_without_cue_uses_first_third():
    elements = extract_key_elements("My big brown dog bit the old mailman")
    assert elements[0] == "My big brown"
    assert " ".join(elements).split() == "My big brown dog bit the old mailman".split()


def test_full_words_strips_punctuation():
    assert full_words("Hello, world! How are you?") == ["Hello", "world", "How", "are", "you"]


def test_chunks_for_uses_curated_chunks():
    """Stage 1 uses the sentence's own chunks when it has them."""
    sentence = make_sentence(
        "The quick brown fox jumps over the lazy dog.",
        chunks=["The quick brown fox", "jumps", "over the lazy dog"],
    )
    assert chunks_for(sentence, Stage.CHUNK) == ["The quick brown fox", "jumps", "over the lazy dog"]


def test_chunks_for_without_chunks_derives_them():
    sentence = Sentence(text="She reads a book every single day.")
    assert chunks_for(sentence, Stage.CHUNK) == auto_chunk(sentence.text)


@pytest.mark.parametrize("stage", [Stage.CHUNK, Stage.KEY_ELEMENT, Stage.FULL_WORD])
def test_chunks_reconstruct_sentence(stage: Stage):
    """Joining a stage's items gives back every word of the sentence."""
    for _ in range(20):
        text = fake.sentence(nb_words=random.randint(3, 14))
        sentence = make_sentence(text)
        items = chunks_for(sentence, stage)
        joined = " ".join(items).split()
        if stage is Stage.CHUNK:
            assert joined == text.split()
        else:
            assert joined == full_words(text)


def test_make_sentence_trims_translation():
    sentence = make_sentence("  I  like apples. ", "  나는 사과를 좋아한다 ")
    assert sentence.text == "I like apples."
    assert sentence.translation == "나는 사과를 좋아한다"
    assert sentence.chunks == ("I like apples.",)


def test_shuffle_items_differs_from_input():
    items = ["a", "b", "c", "d"]
    rng = random.Random(1)
    for _ in range(20):
        shuffled = shuffle_items(items, rng)
        assert shuffled != items
        assert sorted(shuffled) == sorted(items)


def test_shuffle_items_single_or_identical_items():
    """Nothing to reorder: the items come back unchanged."""
    assert shuffle_items(["only"]) == ["only"]
    assert shuffle_items(["same", "same"]) == ["same", "same"]
