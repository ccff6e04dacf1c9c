"""Tests for settings validation."""
import logging
from unittest.mock import patch

import pytest

from sweepbot.config import BotSettings, SessionSettings, Settings, ensure_directories, settings
from sweepbot.logging_config import setup_logging


def test_test_environment_settings():
    assert settings.session.advance_delay == 0
    assert settings.database.url.startswith("sqlite")
    settings.validate()


def test_ensure_directories():
    ensure_directories()
    assert settings.paths.reports_dir.is_dir()
    assert settings.paths.audio_dir.is_dir()


@pytest.mark.parametrize(
    "session, message",
    [
        (SessionSettings(advance_delay=-1), "ADVANCE_DELAY"),
        (SessionSettings(timer_seconds=0), "DEFAULT_TIMER_SECONDS"),
        (SessionSettings(timer_tick=0), "TIMER_TICK"),
        (SessionSettings(attempt_limit=1), "DEFAULT_ATTEMPT_LIMIT"),
        (SessionSettings(attempt_limit=7), "DEFAULT_ATTEMPT_LIMIT"),
        (SessionSettings(tts_mode="loud"), "DEFAULT_TTS_MODE"),
    ],
)
def test_invalid_session_settings(session: SessionSettings, message: str):
    with pytest.raises(ValueError, match=message):
        Settings(session=session).validate()


def test_validate_bot_requires_token():
    with pytest.raises(ValueError, match="TELEGRAM_BOT_TOKEN"):
        Settings(bot=BotSettings(token="")).validate_bot()
    Settings(bot=BotSettings(token="123:abc")).validate_bot()


def test_setup_logging(tmp_path):
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    try:
        with patch.object(settings.logging, "dir", str(tmp_path)):
            setup_logging("Starting tests", level="debug")
        assert root_logger.level == logging.DEBUG
        assert (tmp_path / "sweepbot.log").exists()
        assert logging.getLogger("telegram").level == logging.WARNING
    finally:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
        for handler in handlers:
            root_logger.addHandler(handler)
        root_logger.setLevel(level)
