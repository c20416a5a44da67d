"""Configuration management for flakeswarm."""
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process-wide settings loaded from environment variables.

    These cover the ambient environment flakeswarm runs in (which backend
    binary to call, where artifacts land). Per-run choices such as the
    instance type or the command live in SessionConfig instead.
    """

    # Application
    APP_NAME: str = "flakeswarm"
    APP_VERSION: str = "0.1.0"

    # Backend
    BACKEND_COMMAND: str = "gomote"
    ROOT_PATH_VAR: str = "GOROOT"  # Environment variable `push` syncs from

    # Artifacts
    ARTIFACT_DIR: str = "."

    # Deflake
    RETRY_DELAY_SECONDS: float = 0.0  # Pause between create/provision attempts

    # Logging
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Metrics
    METRICS_PORT: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Singleton settings instance
    """
    return Settings()
