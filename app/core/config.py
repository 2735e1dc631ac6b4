"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "NPC Forge API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./npcforge.db"

    # Redis (RQ maintenance queue)
    REDIS_URL: str = "redis://localhost:6379"
    JOB_TIMEOUT_CLEANUP: int = 300

    # NPC generation (Groq)
    GROQ_API_KEY: str = ""
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    NPC_MAX_TOKENS: int = 1200
    NPC_MAX_TOKENS_WITH_STATS: int = 2000
    NPC_STRUCTURED_OUTPUT: bool = True  # False falls back to labeled free-text parsing

    # Auth (bearer JWT)
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Soft delete / trash
    NPC_RETENTION_DAYS: int = 30
    NPC_CLEANUP_INTERVAL_HOURS: float = 24
    NPC_CLEANUP_ENABLED: bool = True

    # Pagination
    NPC_DEFAULT_PAGE_SIZE: int = 10
    NPC_MAX_PAGE_SIZE: int = 100

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator('GROQ_API_KEY', 'JWT_SECRET', mode='before')
    @classmethod
    def strip_secrets(cls, v):
        """Strip whitespace and newlines from secrets loaded from the environment."""
        if isinstance(v, str):
            return v.strip()
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
