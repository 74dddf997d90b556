import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from errors import ConfigurationError

load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Config:
    # Gemini
    gemini_api_key: Optional[str] = None
    classifier_model: str = "gemini-2.5-flash"
    playlist_model: str = "gemini-2.5-flash"

    # Orchestration
    debounce_seconds: float = 0.5

    # Camera
    camera_index: int = 0
    capture_width: int = 480
    capture_height: int = 480
    jpeg_quality: int = 90

    # Server config
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            classifier_model=os.getenv("CLASSIFIER_MODEL", cls.classifier_model),
            playlist_model=os.getenv("PLAYLIST_MODEL", cls.playlist_model),
            debounce_seconds=float(os.getenv("DEBOUNCE_SECONDS", cls.debounce_seconds)),
            camera_index=int(os.getenv("CAMERA_INDEX", cls.camera_index)),
            capture_width=int(os.getenv("CAPTURE_WIDTH", cls.capture_width)),
            capture_height=int(os.getenv("CAPTURE_HEIGHT", cls.capture_height)),
            jpeg_quality=int(os.getenv("JPEG_QUALITY", cls.jpeg_quality)),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", cls.port)),
            debug=_env_bool("DEBUG", cls.debug),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )

    def validate(self) -> "Config":
        if not self.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set.")
        if not 0 <= self.jpeg_quality <= 100:
            raise ConfigurationError("JPEG_QUALITY must be between 0 and 100.")
        if self.debounce_seconds < 0:
            raise ConfigurationError("DEBOUNCE_SECONDS cannot be negative.")
        return self


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    # Gemini transport chatter
    logging.getLogger("urllib3").setLevel(logging.WARNING)
