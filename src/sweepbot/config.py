"""Configuration settings for the bot."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
REPORTS_DIR = DATA_DIR / "reports"
AUDIO_DIR = DATA_DIR / "audio"

# Session defaults
DEFAULT_TIMER_SECONDS = 60
DEFAULT_ATTEMPT_LIMIT = 3  # value offered when the limit is switched on
MIN_ATTEMPT_LIMIT = 2
MAX_ATTEMPT_LIMIT = 6


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        REPORTS_DIR,
        AUDIO_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    reports_dir: Path = REPORTS_DIR
    audio_dir: Path = AUDIO_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///sweepbot.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class BotSettings:
    """Bot configuration settings."""
    token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")


@dataclass
class SessionSettings:
    """Exercise session settings."""
    advance_delay: float = float(os.getenv("ADVANCE_DELAY", "1.2"))
    speech_advance_delay: float = float(os.getenv("SPEECH_ADVANCE_DELAY", "1.5"))
    timer_seconds: int = int(os.getenv("DEFAULT_TIMER_SECONDS", str(DEFAULT_TIMER_SECONDS)))
    timer_tick: float = float(os.getenv("TIMER_TICK", "1.0"))
    attempt_limit: int = int(os.getenv("DEFAULT_ATTEMPT_LIMIT", str(DEFAULT_ATTEMPT_LIMIT)))
    min_attempt_limit: int = MIN_ATTEMPT_LIMIT
    max_attempt_limit: int = MAX_ATTEMPT_LIMIT
    tts_mode: str = os.getenv("DEFAULT_TTS_MODE", "after-correct")


@dataclass
class SpeechSettings:
    """Text-to-speech settings."""
    language: str = os.getenv("TTS_LANGUAGE", "en")
    tld: str = os.getenv("TTS_TLD", "us")
    slow: bool = os.getenv("TTS_SLOW", "false").lower() == "true"


@dataclass
class ContentSettings:
    """Sentence entry settings."""
    auto_translate: bool = os.getenv("AUTO_TRANSLATE", "false").lower() == "true"
    source_language: str = os.getenv("SOURCE_LANGUAGE", "en")
    translation_language: str = os.getenv("TRANSLATION_LANGUAGE", "ko")


@dataclass
class MonitoringSettings:
    """Metrics settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_bot_settings() -> BotSettings:
    """Get bot settings."""
    return BotSettings()


def get_session_settings() -> SessionSettings:
    """Get session settings."""
    return SessionSettings()


def get_speech_settings() -> SpeechSettings:
    """Get speech settings."""
    return SpeechSettings()


def get_content_settings() -> ContentSettings:
    """Get content settings."""
    return ContentSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    bot: BotSettings = field(default_factory=get_bot_settings)
    session: SessionSettings = field(default_factory=get_session_settings)
    speech: SpeechSettings = field(default_factory=get_speech_settings)
    content: ContentSettings = field(default_factory=get_content_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.session.advance_delay < 0 or self.session.speech_advance_delay < 0:
            raise ValueError("ADVANCE_DELAY and SPEECH_ADVANCE_DELAY must not be negative")

        if self.session.timer_seconds < 1:
            raise ValueError("DEFAULT_TIMER_SECONDS must be positive")

        if self.session.timer_tick <= 0:
            raise ValueError("TIMER_TICK must be positive")

        if not self.session.min_attempt_limit <= self.session.attempt_limit <= self.session.max_attempt_limit:
            raise ValueError(
                f"DEFAULT_ATTEMPT_LIMIT must be between {self.session.min_attempt_limit} "
                f"and {self.session.max_attempt_limit}"
            )

        if self.session.tts_mode not in ("none", "after-correct", "free"):
            raise ValueError("DEFAULT_TTS_MODE must be one of: none, after-correct, free")

    def validate_bot(self) -> None:
        """Validate the settings needed to connect to Telegram."""
        self.validate()
        if not self.bot.token:
            raise ValueError("TELEGRAM_BOT_TOKEN is required")


# Create global settings instance
settings = Settings()
settings.validate()
