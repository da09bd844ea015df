from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class JSONAPISettings(BaseSettings):
    """Engine settings loaded from environment variables with JSONAPI_ prefix."""

    # Pagination
    default_page_size: int = 50
    max_page_size: int | None = None
    # Content negotiation
    enforce_content_type: bool = True
    # Errors
    debug: bool = False
    # Storage
    database_url: str = "sqlite+aiosqlite:///./jsonapi.db"

    model_config = SettingsConfigDict(env_prefix="JSONAPI_", env_file=".env")


@lru_cache
def get_settings() -> JSONAPISettings:
    """Return cached engine settings instance."""
    return JSONAPISettings()
