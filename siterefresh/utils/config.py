"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Claude API (required for analysis)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Pipeline timing
    PROVIDER_TIMEOUT_SECONDS: float = 60.0
    PIPELINE_DEADLINE_SECONDS: float = 100.0  # platform ceiling is 120s
    FETCH_TIMEOUT_SECONDS: float = 15.0
    COOLDOWN_SECONDS: int = 300
    KEEPALIVE_SECONDS: float = 15.0

    # Rate limiting (per client key)
    RATE_LIMIT_MAX_REQUESTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Skill / benchmark cache
    SKILL_CACHE_TTL_SECONDS: int = 300

    # Storage
    REDIS_URL: Optional[str] = None
    DATABASE_URL: Optional[str] = None
    STORAGE_PATH: Optional[str] = None
    PUBLIC_STORAGE_URL: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
