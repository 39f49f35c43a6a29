"""
Configuration settings for the coursegate service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./coursegate.db",
        description="SQLAlchemy connection string for the progress store",
    )

    # ========================================
    # Course Content
    # ========================================
    content_dir: str | None = Field(
        default=None,
        description="Directory holding <course>/course.yaml definitions (None to register courses in code)",
    )

    # ========================================
    # Heartbeats
    # ========================================
    heartbeat_max_delta_seconds: int = Field(
        default=120,
        description="Upper bound applied to every heartbeat delta",
    )
    heartbeat_interval_seconds: int = Field(
        default=60,
        description="Interval clients use between periodic heartbeats",
    )
    idle_threshold_seconds: int = Field(
        default=120,
        description="Seconds without interaction after which time counts as idle",
    )

    # ========================================
    # Lesson Completion
    # ========================================
    enforce_min_lesson_time: bool = Field(
        default=False,
        description="Reject lesson completion until min_lesson_time_seconds is recorded",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/coursegate.log",
        description="Log file path (None for stdout only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_heartbeat_config(self) -> dict[str, int]:
        """Get heartbeat timing configuration as a dictionary."""
        return {
            "max_delta_seconds": self.heartbeat_max_delta_seconds,
            "interval_seconds": self.heartbeat_interval_seconds,
            "idle_threshold_seconds": self.idle_threshold_seconds,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
