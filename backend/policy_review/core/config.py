from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Policy Review Engine"
    DATABASE_URL: str = "sqlite:///./policy_review.db"
    LOG_LEVEL: str = "INFO"

    # Bounds for interactive diffs; exceeding them degrades to a line-level diff.
    DIFF_MAX_EDIT_DISTANCE: int | None = 20000
    DIFF_TIMEOUT_SECONDS: float | None = 2.0
    DIFF_GRANULARITY: str = "character"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> "Settings":
    return Settings()


settings = get_settings()
