"""Tests for speech playback and spoken-answer checks."""
from unittest.mock import patch

import pytest
from gtts import gTTSError

from sweepbot.exceptions import EnvironmentUnavailableError
from sweepbot.models.session_models import TTSMode, WordDiff, WordStatus
from sweepbot.services.speech_service import (
    SpeechAttemptTracker,
    SpeechService,
    format_word_diff,
    normalize_speech,
    speech_matches,
    word_diff,
)


def fake_write_to_fp(fp):
    fp.write(b"ID3-fake-mp3")


@pytest.fixture
def speech_service(tmp_path) -> SpeechService:
    return SpeechService(cache_dir=tmp_path / "audio")


def test_normalize_speech():
    assert normalize_speech("  Hello,   World! ") == "hello world"
    assert normalize_speech("It's (really) fine.") == "its really fine"


def test_speech_matches_ignores_case_and_punctuation():
    assert speech_matches("the quick brown fox", "The quick, brown fox!")
    assert not speech_matches("the quick fox", "The quick brown fox.")


def test_word_diff():
    diff = word_diff("the big brown fox jumps", "The quick brown fox.")
    assert diff == (
        WordDiff("the", WordStatus.CORRECT),
        WordDiff("big", WordStatus.WRONG),
        WordDiff("brown", WordStatus.CORRECT),
        WordDiff("fox", WordStatus.CORRECT),
        WordDiff("jumps", WordStatus.EXTRA),
    )
    assert format_word_diff(diff) == "✅the ❌big ✅brown ✅fox ➕jumps"


def test_word_diff_does_not_list_missing_words():
    assert [item.word for item in word_diff("the", "The quick brown fox.")] == ["the"]


def test_attempt_tracker_keeps_latest_attempt():
    tracker = SpeechAttemptTracker()
    first = tracker.begin()
    second = tracker.begin()
    assert second != first
    assert tracker.active == second
    assert not tracker.finish(first)
    assert tracker.finish(second)
    assert tracker.active is None


def test_attempt_tracker_cancel():
    tracker = SpeechAttemptTracker()
    token = tracker.begin()
    tracker.cancel()
    assert not tracker.finish(token)


@pytest.mark.parametrize(
    "mode, after_correct, expected",
    [
        (TTSMode.NONE, True, False),
        (TTSMode.NONE, False, False),
        (TTSMode.AFTER_CORRECT, True, True),
        (TTSMode.AFTER_CORRECT, False, False),
        (TTSMode.FREE, False, True),
        (TTSMode.FREE, True, True),
    ],
)
def test_allows_playback(mode, after_correct, expected):
    assert SpeechService.allows_playback(mode, after_correct) is expected


@patch("sweepbot.services.speech_service.gTTS")
def test_synthesize_caches_audio(mock_gtts, speech_service: SpeechService):
    mock_gtts.return_value.write_to_fp.side_effect = fake_write_to_fp

    assert speech_service.synthesize("I like apples.") == b"ID3-fake-mp3"
    assert speech_service.synthesize("I like apples.") == b"ID3-fake-mp3"

    mock_gtts.assert_called_once()
    assert mock_gtts.call_args.kwargs["text"] == "I like apples."
    assert len(list(speech_service.cache_dir.glob("*.mp3"))) == 1


@patch("sweepbot.services.speech_service.gTTS")
def test_synthesize_failure(mock_gtts, speech_service: SpeechService):
    mock_gtts.return_value.write_to_fp.side_effect = gTTSError("connection refused")
    with pytest.raises(EnvironmentUnavailableError):
        speech_service.synthesize("I like apples.")
    assert not speech_service.cache_dir.exists()


@pytest.mark.asyncio
@patch("sweepbot.services.speech_service.gTTS")
async def test_speak(mock_gtts, speech_service: SpeechService):
    mock_gtts.return_value.write_to_fp.side_effect = fake_write_to_fp
    assert await speech_service.speak("Hi.") == b"ID3-fake-mp3"
