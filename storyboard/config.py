"""
Application Configuration - Environment Variable Management.
Loads and validates configuration from .env file.
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
    logger.info(f"Loaded environment from {ENV_FILE}")
else:
    logger.warning(f".env file not found at {ENV_FILE}")


@dataclass
class AIConfig:
    """Gemini model configuration."""
    google_api_key: Optional[str] = None
    text_model: str = "gemini-3-flash-preview"
    image_model: str = "gemini-2.5-flash-image"
    request_timeout: float = 120.0

    @property
    def has_google(self) -> bool:
        return bool(self.google_api_key and not self.google_api_key.startswith("PASTE_"))


@dataclass
class StoryboardConfig:
    """Batch generation settings."""
    chunk_size: int = 8
    default_style: str = "semi_realistic_webtoon"
    default_scene_count: int = 4
    min_scene_count: int = 4
    max_scene_count: int = 99
    auto_export: bool = False


@dataclass
class PathsConfig:
    """File system paths configuration."""
    data_dir: Path
    exports_dir: Path

    @classmethod
    def detect(cls) -> "PathsConfig":
        """Resolve paths from environment and create them."""
        data_dir = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
        data_dir.mkdir(parents=True, exist_ok=True)

        exports_dir = Path(os.getenv("EXPORTS_DIR", str(data_dir / "exports")))
        exports_dir.mkdir(parents=True, exist_ok=True)

        return cls(data_dir=data_dir, exports_dir=exports_dir)


@dataclass
class AppConfig:
    """Main Application Configuration."""
    ai: AIConfig
    paths: PathsConfig
    storyboard: StoryboardConfig = field(default_factory=StoryboardConfig)
    debug: bool = False

    def validate(self) -> dict:
        """Validate configuration and return status."""
        return {
            "ai": {
                "google_configured": self.ai.has_google,
                "text_model": self.ai.text_model,
                "image_model": self.ai.image_model,
            },
            "storyboard": {
                "chunk_size": self.storyboard.chunk_size,
                "auto_export": self.storyboard.auto_export,
            },
            "ready": self.ai.has_google,
        }

    def log_status(self):
        """Log configuration status (without exposing keys)."""
        status = self.validate()

        logger.info("=" * 50)
        logger.info("Configuration Status:")
        logger.info(f"  Google API: {'OK' if status['ai']['google_configured'] else 'NOT CONFIGURED'}")
        logger.info(f"  Text model: {self.ai.text_model}")
        logger.info(f"  Image model: {self.ai.image_model}")
        logger.info(f"  Chunk size: {self.storyboard.chunk_size}")
        logger.info(f"  Data Dir: {self.paths.data_dir}")
        logger.info("=" * 50)

        if not status["ready"]:
            logger.warning("GOOGLE_API_KEY not set - generation calls will fail")


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    ai_config = AIConfig(
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        text_model=os.getenv("GEMINI_TEXT_MODEL", "gemini-3-flash-preview"),
        image_model=os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image"),
        request_timeout=float(os.getenv("GEMINI_TIMEOUT_SECONDS", "120")),
    )

    storyboard_config = StoryboardConfig(
        chunk_size=int(os.getenv("STORYBOARD_CHUNK_SIZE", "8")),
        default_style=os.getenv("DEFAULT_STYLE", "semi_realistic_webtoon"),
        auto_export=os.getenv("AUTO_EXPORT", "false").lower() == "true",
    )

    return AppConfig(
        ai=ai_config,
        paths=PathsConfig.detect(),
        storyboard=storyboard_config,
        debug=os.getenv("DEBUG", "false").lower() == "true",
    )


# Global config instance
config = load_config()
