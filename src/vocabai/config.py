"""Configuration settings for VocabAI."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from vocabai.models.game_models import SpeechMode
from vocabai.models.vocabulary import Level

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _data_dir() -> Path:
    return Path(os.getenv("DATA_DIR", "./data"))


def ensure_directories(paths: "PathSettings") -> None:
    """Ensure all required directories exist."""
    for directory in (paths.data_dir, paths.dictionaries_dir, paths.audio_dir):
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = field(default_factory=_data_dir)
    dictionaries_dir: Path = field(default_factory=lambda: _data_dir() / "dictionaries")
    audio_dir: Path = field(default_factory=lambda: _data_dir() / "media" / "audio")


@dataclass
class DatabaseSettings:
    """Preference store settings."""
    url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///vocabai.db"))
    echo: bool = field(default_factory=lambda: _env_bool("DATABASE_ECHO"))


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = field(default_factory=lambda: os.getenv("LOG_DIR"))
    rotation: str = field(default_factory=lambda: os.getenv("LOG_ROTATION", "midnight"))
    interval: int = field(default_factory=lambda: int(os.getenv("LOG_INTERVAL", "1")))
    backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "7")))


@dataclass
class OpenAISettings:
    """Challenge generation (OpenAI) settings."""
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    base_url: str = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"))
    model: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"))
    temperature: float = field(default_factory=lambda: float(os.getenv("OPENAI_TEMPERATURE", "0.7")))
    max_tokens: int = field(default_factory=lambda: int(os.getenv("OPENAI_MAX_TOKENS", "250")))
    timeout: float = field(default_factory=lambda: float(os.getenv("OPENAI_TIMEOUT", "30")))
    requests_per_minute: int = field(default_factory=lambda: int(os.getenv("OPENAI_REQUESTS_PER_MINUTE", "60")))
    retry_attempts: int = field(default_factory=lambda: int(os.getenv("OPENAI_RETRY_ATTEMPTS", "3")))
    retry_delay: float = field(default_factory=lambda: float(os.getenv("OPENAI_RETRY_DELAY", "1.0")))


@dataclass
class SpeechSettings:
    """Speech synthesis settings."""
    backend: str = field(default_factory=lambda: os.getenv("SPEECH_BACKEND", "gtts").strip().lower())
    elevenlabs_api_key: str = field(default_factory=lambda: os.getenv("ELEVENLABS_API_KEY", ""))
    elevenlabs_base_url: str = field(
        default_factory=lambda: os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io/v1")
    )
    voice_id: str = field(default_factory=lambda: os.getenv("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM"))
    model: str = field(default_factory=lambda: os.getenv("ELEVENLABS_MODEL", "eleven_monolingual_v1"))
    language: str = field(default_factory=lambda: os.getenv("SPEECH_LANGUAGE", "en"))
    timeout: float = field(default_factory=lambda: float(os.getenv("SPEECH_TIMEOUT", "30")))
    requests_per_minute: int = field(default_factory=lambda: int(os.getenv("SPEECH_REQUESTS_PER_MINUTE", "60")))
    retry_attempts: int = field(default_factory=lambda: int(os.getenv("SPEECH_RETRY_ATTEMPTS", "5")))
    retry_delay: float = field(default_factory=lambda: float(os.getenv("SPEECH_RETRY_DELAY", "1.5")))
    prewarm: bool = field(default_factory=lambda: _env_bool("SPEECH_PREWARM", "true"))
    prewarm_delay: float = field(default_factory=lambda: float(os.getenv("SPEECH_PREWARM_DELAY", "0.1")))


@dataclass
class GameSettings:
    """Quiz defaults."""
    default_level: str = field(default_factory=lambda: os.getenv("DEFAULT_LEVEL", "any"))
    default_speech_mode: str = field(default_factory=lambda: os.getenv("DEFAULT_SPEECH_MODE", "silent"))
    rearm_delay: float = field(default_factory=lambda: float(os.getenv("LISTEN_REARM_DELAY", "0.25")))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    port: Optional[int] = field(
        default_factory=lambda: int(os.environ["METRICS_PORT"]) if os.getenv("METRICS_PORT") else None
    )


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=PathSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    openai: OpenAISettings = field(default_factory=OpenAISettings)
    speech: SpeechSettings = field(default_factory=SpeechSettings)
    game: GameSettings = field(default_factory=GameSettings)
    monitoring: MonitoringSettings = field(default_factory=MonitoringSettings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.speech.backend not in ("elevenlabs", "gtts"):
            raise ValueError("SPEECH_BACKEND must be elevenlabs or gtts")

        if not 0 <= self.openai.temperature <= 1:
            raise ValueError("OPENAI_TEMPERATURE must be between 0 and 1")

        if not 1 <= self.openai.max_tokens <= 4096:
            raise ValueError("OPENAI_MAX_TOKENS must be between 1 and 4096")

        for name, value in (
            ("OPENAI_REQUESTS_PER_MINUTE", self.openai.requests_per_minute),
            ("OPENAI_RETRY_ATTEMPTS", self.openai.retry_attempts),
            ("SPEECH_REQUESTS_PER_MINUTE", self.speech.requests_per_minute),
            ("SPEECH_RETRY_ATTEMPTS", self.speech.retry_attempts),
        ):
            if value < 1:
                raise ValueError(f"{name} must be positive")

        if self.openai.retry_delay < 0 or self.speech.retry_delay < 0:
            raise ValueError("Retry delays cannot be negative")

        if self.game.rearm_delay < 0:
            raise ValueError("LISTEN_REARM_DELAY cannot be negative")

        Level.parse(self.game.default_level)
        SpeechMode.parse(self.game.default_speech_mode)


def load_settings() -> Settings:
    """Build and validate a fresh settings instance from the environment."""
    settings = Settings()
    settings.validate()
    return settings


@dataclass(frozen=True)
class SessionConfig:
    """Per-session configuration handed to the conversation engine."""
    level: Level = Level.ANY
    speech_mode: SpeechMode = SpeechMode.SILENT
    options_count: int = 4
    rearm_delay: float = 0.25

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionConfig":
        return cls(
            level=Level.parse(settings.game.default_level),
            speech_mode=SpeechMode.parse(settings.game.default_speech_mode),
            rearm_delay=settings.game.rearm_delay,
        )
