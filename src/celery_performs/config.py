"""Application settings loaded from the environment.

Usage:
    ```python
    from celery_performs.config import get_settings

    settings = get_settings()
    settings.CELERY_BROKER_URL
    ```
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the Celery app and the job conventions built on it."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = ""

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: list[str] = ["json"]
    CELERY_TIMEZONE: str = "UTC"
    CELERY_ENABLE_UTC: bool = True
    CELERY_TASK_ALWAYS_EAGER: bool = False
    CELERY_TASK_DEFAULT_QUEUE: str = "default"

    # Global ids handed across the job boundary look like gid://<app>/...
    GLOBAL_ID_APP: str = "performs"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
