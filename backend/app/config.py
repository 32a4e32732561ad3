"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Settings shared by the API and worker processes, loaded from the environment."""

    # API Settings
    APP_NAME: str = "Flow Runner"
    APP_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 4000

    # Database Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./flowrunner.db"
    SQLALCHEMY_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Redis / run queue Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    RUN_QUEUE_BACKEND: str = "redis"  # redis or memory
    RUN_QUEUE_KEY: str = "runs_queue"

    # Worker Settings (seconds)
    WORKER_POLL_INTERVAL: float = 0.5
    WORKER_ERROR_BACKOFF: float = 1.0
    WORKER_CONCURRENCY: int = 1

    # Node Settings
    HTTP_NODE_TIMEOUT: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.

    Uses caching to ensure settings are loaded only once.

    Returns:
        Settings object with all configuration values
    """
    return Settings()
