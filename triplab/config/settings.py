"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration — all values from .env or environment."""

    DATABASE_URL: str = "sqlite+aiosqlite:///./data/triplab.db"
    LOG_LEVEL: str = "INFO"

    DATE_WRITE_DEBOUNCE_SECONDS: float = 0.3
    SHAREABLE_CODE_LENGTH: int = 6
    CODE_ALLOCATION_ATTEMPTS: int = 5
    SITE_URL: str = "http://localhost:5173"

    OPENROUTER_API_KEY: str = ""
    CHAT_UPSTREAM_URL: str = "https://openrouter.ai/api/v1/chat/completions"
    CHAT_PROXY_URL: str = "http://localhost:3001/api/chat"
    CHAT_DEFAULT_MODEL: str = "anthropic/claude-3.5-sonnet"
    CHAT_MAX_TOKENS: int = 1024
    CHAT_TEMPERATURE: float = 0.7
    CHAT_TIMEOUT: float = 60.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
