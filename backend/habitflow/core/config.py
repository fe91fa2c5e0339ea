"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "HabitFlow Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://habitflow@localhost:5432/habitflow"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "habitflow"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    openai_timeout_seconds: float = 30.0
    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    notifications_enabled: bool = False
    notifications_provider: str = "noop"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
