"""Encoding of sentence sets and session settings into shareable codes."""
import base64
import binascii
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple
from urllib.parse import quote, unquote

from sweepbot.config import DEFAULT_TIMER_SECONDS
from sweepbot.exceptions import ConfigurationError
from sweepbot.models.session_models import ALL_STAGES, Sentence, SessionConfig
from sweepbot.services.chunker import full_words, make_sentence

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves alone, so codes match the ones made by web clients
URI_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class SharedSession:
    """A decoded share code."""
    sentences: Tuple[Sentence, ...] = ()
    config: SessionConfig = field(default_factory=SessionConfig)


def encode_share_payload(sentences: Sequence[Sentence], config: SessionConfig) -> str:
    """Pack sentences and settings into base64(percent-encoded JSON)."""
    payload = {
        "sentences": [{"e": s.text, "k": s.translation} for s in sentences],
        "stages": [int(stage) for stage in config.selected_stages],
        "timer": config.timer.seconds if config.timer.enabled else 0,
        "random": config.random_order,
        "attemptLimit": config.attempt_limit,
        "progressMode": config.progression_mode.value,
        "ttsMode": config.tts_mode.value,
    }
    text = quote(json.dumps(payload, ensure_ascii=False, separators=(",", ":")), safe=URI_SAFE)
    return base64.b64encode(text.encode("ascii")).decode("ascii")


def _parse_sentence(item: Any) -> Sentence:
    if isinstance(item, str):
        return make_sentence(item)
    if isinstance(item, dict) and isinstance(item.get("e"), str):
        translation = item.get("k") or ""
        if not isinstance(translation, str):
            raise ConfigurationError("Shared translation must be text")
        return make_sentence(item["e"], translation)
    raise ConfigurationError(f"Unsupported shared sentence: {item!r}")


def _parse_sentences(items: Any) -> Tuple[Sentence, ...]:
    if not isinstance(items, list):
        raise ConfigurationError("Shared sentences must be a list")
    sentences: List[Sentence] = [_parse_sentence(item) for item in items]
    return tuple(s for s in sentences if full_words(s.text))


def _parse_timer(value: Any) -> float:
    """Seconds of the shared timer; 0 when off. Web clients may send a numeric string."""
    if isinstance(value, str):
        try:
            value = float(value.strip() or 0)
        except ValueError:
            raise ConfigurationError(f"Invalid shared timer {value!r}") from None
    if not value:
        return 0
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
        raise ConfigurationError(f"Invalid shared timer {value!r}")
    return value


def decode_share_payload(code: str) -> SharedSession:
    """Unpack a share code.

    Accepts the legacy format (a bare list of sentence strings) and the object
    format whose sentences may be strings or {"e", "k"} objects.

    Raises:
        ConfigurationError: if the code cannot be decoded.
    """
    try:
        text = base64.b64decode(code.strip(), validate=True).decode("ascii")
        data = json.loads(unquote(text, errors="strict"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ConfigurationError(f"Invalid share code: {e}") from e

    if isinstance(data, list):
        return SharedSession(sentences=_parse_sentences(data), config=SessionConfig(selected_stages=ALL_STAGES))

    if not isinstance(data, dict):
        raise ConfigurationError("Invalid share code: unexpected payload")

    timer = _parse_timer(data.get("timer"))
    config = SessionConfig.from_raw(
        selected_stages=data.get("stages") or list(ALL_STAGES),
        random_order=bool(data.get("random", False)),
        attempt_limit=data.get("attemptLimit", 0),
        progression_mode=data.get("progressMode") or "focus",
        timer_enabled=timer > 0,
        timer_seconds=int(timer) if timer > 0 else DEFAULT_TIMER_SECONDS,
        tts_mode=data.get("ttsMode") or "after-correct",
    )
    return SharedSession(sentences=_parse_sentences(data.get("sentences", [])), config=config)


def decode_or_default(code: str) -> Tuple[SharedSession, str]:
    """Decode a share code, or return an empty default session and the error message."""
    try:
        return decode_share_payload(code), ""
    except ConfigurationError as e:
        logger.warning(f"Could not load share code: {e}")
        return SharedSession(), str(e)
