"""Speech I/O: reading sentences aloud and checking spoken answers."""
import asyncio
import hashlib
import io
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from gtts import gTTS, gTTSError

from sweepbot.config import settings
from sweepbot.exceptions import EnvironmentUnavailableError
from sweepbot.models.session_models import TTSMode, WordDiff, WordStatus

logger = logging.getLogger(__name__)

SPEECH_PUNCTUATION_RE = re.compile(r"[.,!?;:'\"()\-]")
WHITESPACE_RE = re.compile(r"\s+")


def normalize_speech(text: str) -> str:
    """Lower-case, strip punctuation and collapse whitespace for comparison."""
    text = SPEECH_PUNCTUATION_RE.sub("", text.lower())
    return WHITESPACE_RE.sub(" ", text).strip()


def speech_matches(spoken: str, target: str) -> bool:
    return normalize_speech(spoken) == normalize_speech(target)


def word_diff(spoken: str, target: str) -> Tuple[WordDiff, ...]:
    """Compare a spoken answer with the target word by word, position by position.

    Spoken words past the end of the target are marked extra; missing words
    are not listed.
    """
    spoken_words = normalize_speech(spoken).split()
    target_words = normalize_speech(target).split()
    diff: List[WordDiff] = []
    for i, word in enumerate(spoken_words):
        if i >= len(target_words):
            diff.append(WordDiff(word=word, status=WordStatus.EXTRA))
        elif word == target_words[i]:
            diff.append(WordDiff(word=word, status=WordStatus.CORRECT))
        else:
            diff.append(WordDiff(word=word, status=WordStatus.WRONG))
    return tuple(diff)


def format_word_diff(diff: Tuple[WordDiff, ...]) -> str:
    """Render a diff as text: ✅ right, ❌ wrong, ➕ extra."""
    marks = {WordStatus.CORRECT: "✅", WordStatus.WRONG: "❌", WordStatus.EXTRA: "➕"}
    return " ".join(f"{marks[item.status]}{item.word}" for item in diff)


class SpeechAttemptTracker:
    """Keeps only the latest speech recognition attempt alive.

    Each attempt gets a token; starting a new attempt cancels the previous one,
    and results that arrive for a cancelled token are dropped.
    """

    def __init__(self):
        self._token = 0
        self._active: Optional[int] = None

    def begin(self) -> int:
        """Start a new attempt, cancelling any attempt still in progress."""
        if self._active is not None:
            logger.debug(f"Cancelling speech attempt {self._active}")
        self._token += 1
        self._active = self._token
        return self._active

    def cancel(self) -> None:
        self._active = None

    @property
    def active(self) -> Optional[int]:
        return self._active

    def finish(self, token: int) -> bool:
        """Close an attempt; False when it was already cancelled or replaced."""
        if token != self._active:
            logger.debug(f"Dropping stale speech result for attempt {token}")
            return False
        self._active = None
        return True


class SpeechService:
    """Text-to-speech playback gated by the session's TTS mode."""

    def __init__(self, cache_dir: Optional[Path] = None):
        self.cache_dir = cache_dir or settings.paths.audio_dir

    @staticmethod
    def allows_playback(mode: TTSMode, after_correct: bool = False) -> bool:
        """Whether a sentence may be read aloud now.

        Args:
            mode: Session TTS mode.
            after_correct: True when playback follows a correct answer, False for a learner request.
        """
        if mode is TTSMode.NONE:
            return False
        if mode is TTSMode.AFTER_CORRECT:
            return after_correct
        return True

    def _cache_path(self, text: str) -> Path:
        digest = hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]
        return self.cache_dir / f"{digest}.mp3"

    def synthesize(self, text: str) -> bytes:
        """Render a sentence to MP3 bytes, reusing a cached file when present.

        Raises:
            EnvironmentUnavailableError: if the speech back end cannot be reached.
        """
        path = self._cache_path(text)
        if path.exists():
            return path.read_bytes()

        try:
            tts = gTTS(text=text, lang=settings.speech.language, tld=settings.speech.tld, slow=settings.speech.slow)
            buffer = io.BytesIO()
            tts.write_to_fp(buffer)
        except (gTTSError, AssertionError, ValueError) as e:
            logger.error(f"Error generating speech for: {text}, error: {e}")
            raise EnvironmentUnavailableError("Text-to-speech is not available right now") from e

        audio = buffer.getvalue()
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(audio)
        except OSError as e:
            logger.warning(f"Could not cache speech for: {text}, error: {e}")
        logger.info(f"Speech generated for: {text}")
        return audio

    async def speak(self, text: str) -> bytes:
        """Async wrapper around synthesize(); gTTS does blocking HTTP."""
        return await asyncio.to_thread(self.synthesize, text)
