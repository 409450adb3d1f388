"""Configuration management using Pydantic Settings."""

from typing import List, Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Background jobs settings loaded from BGJOBS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BGJOBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = True

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_database: int = 1
    redis_namespace: str = "background_jobs"
    # Must stay above dequeue_timeout, otherwise BLPOP is cut by the socket
    redis_socket_timeout: float = 60.0

    # Job history
    max_job_history_ttl: int = 86400
    track_status: bool = True
    track_status_ttl: int = 600  # TTL for jobs enqueued without status tracking
    dequeue_timeout: int = 30

    # Supervisor
    supervisor_host: str = "localhost"
    supervisor_port: int = 9001
    supervisor_user: Optional[str] = None
    supervisor_password: Optional[str] = None
    process_group: str = "bgjobs-workers"

    # Command handlers
    console_command: List[str] = Field(default_factory=lambda: ["app/Console/cake"])

    # Monitor
    monitor_interval: float = 30.0

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @model_validator(mode="after")
    def _check_timeouts(self) -> "Settings":
        if self.dequeue_timeout >= self.redis_socket_timeout:
            raise ValueError(
                "dequeue_timeout must be lower than redis_socket_timeout"
            )
        return self


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
