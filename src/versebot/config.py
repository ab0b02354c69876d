"""Configuration settings for the bot."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent
PACKAGE_DIR = Path(__file__).parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
MEDIA_DIR = DATA_DIR / "media"
VERSE_AUDIO_DIR = MEDIA_DIR / "verses"
VOICE_DIR = MEDIA_DIR / "voice"
VERSE_LIBRARY_FILE = Path(os.getenv("VERSE_LIBRARY_FILE", str(PACKAGE_DIR / "data" / "verses.json")))

# Exercise settings
ROUND_MASK_PERCENTAGES = [0.0, 0.3, 0.6]  # round 1 is a warm-up without masking
REFERENCE_QUIZ_DISTRACTORS = {
    "book": ["Psalms", "Romans", "John"],
    "chapter": ["2", "4", "7"],
    "verses": ["1-2", "8", "12-13"],
}


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        MEDIA_DIR,
        VERSE_AUDIO_DIR,
        VOICE_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    media_dir: Path = MEDIA_DIR
    verse_audio_dir: Path = VERSE_AUDIO_DIR
    voice_dir: Path = VOICE_DIR
    verse_library_file: Path = VERSE_LIBRARY_FILE


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///versebot.db")
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
    admin_notification_level: str = os.getenv("ADMIN_NOTIFICATION_LEVEL", "ERROR")


def get_admin_ids() -> list[int]:
    """Get admin IDs from environment variable."""
    return [int(id_) for id_ in os.getenv("TELEGRAM_ADMIN_IDS", "").split(",") if id_]


@dataclass
class BotSettings:
    """Bot configuration settings."""
    token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    admin_ids: list[int] = field(default_factory=get_admin_ids)


@dataclass
class ExerciseSettings:
    """Exercise generation settings."""
    days_per_verse: int = int(os.getenv("DAYS_PER_VERSE", "7"))
    base_difficulty: float = float(os.getenv("BASE_DIFFICULTY", "10"))
    difficulty_step: float = float(os.getenv("DIFFICULTY_STEP", "8.33"))
    max_difficulty: float = float(os.getenv("MAX_DIFFICULTY", "60"))
    default_day: int = int(os.getenv("DEFAULT_DAY", "4"))
    typing_rounds: int = int(os.getenv("TYPING_ROUNDS", "3"))
    round_mask_percentages: list[float] = field(default_factory=lambda: list(ROUND_MASK_PERCENTAGES))
    blank_marker: str = "____"
    mask_marker: str = "•••"
    default_translation: str = os.getenv("DEFAULT_TRANSLATION", "KJV")


@dataclass
class SpeechSettings:
    """Speech-to-text and text-to-speech settings."""
    api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    transcription_model: str = os.getenv("TRANSCRIPTION_MODEL", "gpt-4o-mini-transcribe")
    tts_language: str = os.getenv("TTS_LANGUAGE", "en")

    @property
    def transcription_enabled(self) -> bool:
        return bool(self.api_key)


@dataclass
class NotificationSettings:
    """Notification settings."""
    enabled: bool = os.getenv("NOTIFICATIONS_ENABLED", "true").lower() == "true"
    default_reminder_hour: int = int(os.getenv("DEFAULT_REMINDER_HOUR", "8"))
    check_interval: int = int(os.getenv("REMINDER_CHECK_INTERVAL", "3600"))


@dataclass
class MonitoringSettings:
    """Prometheus monitoring settings."""
    enabled: bool = os.getenv("MONITORING_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("MONITORING_PORT", "9090"))


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


def get_exercise_settings() -> ExerciseSettings:
    """Get exercise settings."""
    return ExerciseSettings()


def get_speech_settings() -> SpeechSettings:
    """Get speech settings."""
    return SpeechSettings()


def get_notification_settings() -> NotificationSettings:
    """Get notification settings."""
    return NotificationSettings()


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
    exercise: ExerciseSettings = field(default_factory=get_exercise_settings)
    speech: SpeechSettings = field(default_factory=get_speech_settings)
    notification: NotificationSettings = field(default_factory=get_notification_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self, require_token: bool = True) -> None:
        """Validate settings and raise ValueError if invalid."""
        if require_token and not self.bot.token:
            raise ValueError("TELEGRAM_BOT_TOKEN is required")

        if self.exercise.days_per_verse < 1:
            raise ValueError("DAYS_PER_VERSE must be positive")

        if not 0 <= self.exercise.base_difficulty <= self.exercise.max_difficulty <= 100:
            raise ValueError("BASE_DIFFICULTY and MAX_DIFFICULTY must satisfy 0 <= base <= max <= 100")

        if self.exercise.typing_rounds < 1:
            raise ValueError("TYPING_ROUNDS must be positive")

        if not self.exercise.round_mask_percentages or \
           any(p < 0 or p >= 1 for p in self.exercise.round_mask_percentages):
            raise ValueError("Round mask percentages must be in [0, 1)")

        if not 0 <= self.notification.default_reminder_hour <= 23:
            raise ValueError("DEFAULT_REMINDER_HOUR must be between 0 and 23")


# Create global settings instance
settings = Settings()
settings.validate(require_token=False)
