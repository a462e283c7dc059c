from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from neurofeed.core.version import __version__

PACKAGE_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PORT: int = 8000
    APP_NAME: str = "NeuroFeed"
    APP_ENV: Literal["development", "production", "test"] = "production"

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_PROFILE_KEY: str = "neurofeed:profile:"
    REDIS_CREDENTIALS_KEY: str = "neurofeed:credentials:"
    TOKEN_SALT: str = "change-me"

    CATALOG_PATH: str = str(PACKAGE_ROOT / "data" / "posts.json")

    # AI
    DEFAULT_GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_API_KEY: str | None = None
    COLLABORATOR_MAX_ATTEMPTS: int = 3
    COLLABORATOR_BACKOFF_SECONDS: float = 0.5

    # Scoring (tuned heuristics, not invariants)
    POPULARITY_WEIGHT: float = 0.05
    INTEREST_MULTIPLIER: float = 4.0
    SYNERGY_BONUS: float = 5.0
    DISLIKE_PENALTY_MULTIPLIER: float = 5.0
    VETO_THRESHOLD: float = 25.0
    VETO_BASE: float = -1000.0
    VETO_SCALE: float = 0.1

    # Retrieval
    CANDIDATE_LIMIT: int = 25
    INTEREST_POOL_SIZE: int = 15
    SEARCH_POOL_SIZE: int = 10
    VOCABULARY_LIMIT: int = 300

    # Pipeline
    AUTO_APPLY_THRESHOLD_MS: float = 3000.0
    RERANK_INTEREST_COUNT: int = 5
    CLEANUP_HISTORY_SIZE: int = 8
    FEEDBACK_HISTORY_LIMIT: int = 50
    DECAY_MIN_FEEDBACK_EVENTS: int = 3
    DECAY_MIN_INTERESTS: int = 3
    EVENT_LOG_LIMIT: int = 200
    POSTS_PER_PAGE: int = 15
    RUN_HISTORY_LIMIT: int = 50

    # Sessions
    SESSION_CACHE_SIZE: int = 1000
    SESSION_TTL_SECONDS: int = 86400


settings = Settings()

APP_VERSION = __version__
