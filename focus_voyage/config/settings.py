from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    """Application settings with validation"""

    # API Configuration
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL_NAME: str = "gemini-1.5-flash"
    CLASSIFIER_TIMEOUT_SECONDS: float = 20.0
    CLASSIFIER_MIN_CONFIDENCE: float = 0.0

    # Detection Configuration (production values; tests shorten them)
    DEBOUNCE_WINDOW_SECONDS: float = 10.0
    DEBOUNCE_SCOPE: str = "signal"  # "signal" or "session"
    ATTENTION_GRACE_SECONDS: float = 15.0
    IDLE_THRESHOLD_SECONDS: float = 120.0
    CONTENT_POLL_INTERVAL_SECONDS: float = 60.0
    CONTENT_IRRELEVANT_THRESHOLD_SECONDS: float = 15.0
    PRESENCE_POLL_INTERVAL_SECONDS: float = 60.0
    PRESENCE_ABSENCE_THRESHOLD_SECONDS: float = 15.0
    BLACKLIST_THRESHOLD_SECONDS: float = 15.0

    # Persistence Configuration
    PERSISTENCE_FLUSH_TIMEOUT_SECONDS: float = 5.0

    # Location lists for the blacklist detector
    DISTRACTION_BLACKLIST: List[str] = [
        "facebook.com", "twitter.com", "x.com", "instagram.com", "tiktok.com",
        "reddit.com", "youtube.com/watch", "netflix.com", "twitch.tv",
        "amazon.com/s", "ebay.com", "cnn.com", "bbc.com", "news.google.com",
        "steam.com", "roblox.com", "buzzfeed.com", "9gag.com", "imgur.com",
    ]
    PRODUCTIVITY_WHITELIST: List[str] = [
        "github.com", "gitlab.com", "stackoverflow.com", "localhost", "127.0.0.1",
        "notion.so", "docs.google.com", "drive.google.com", "scholar.google.com",
        "arxiv.org", "figma.com", "calendar.google.com",
    ]

    # Snapshot Configuration
    SNAPSHOT_MAX_DIMENSION: int = 1280
    SNAPSHOT_JPEG_QUALITY: int = 80

    # Path Configuration
    BASE_DIR: Path = Path(__file__).parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    LOG_DIR: Path = BASE_DIR / "logs"
    DEFAULT_DB_PATH: Path = BASE_DIR / "data" / "focus_voyage.db"

    # Web Configuration
    WEB_PORT: int = 8000
    WEB_HOST: str = "localhost"

    # Development Configuration
    DEBUG: bool = False
    ENV: str = "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def validate_paths(self) -> None:
        """Ensure all required paths exist"""
        for path in [self.DATA_DIR, self.LOG_DIR]:
            path.mkdir(parents=True, exist_ok=True)

settings = Settings()
