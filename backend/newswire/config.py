"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_API_KEYS = frozenset({"YOUR_API_KEY_HERE", "changeme"})


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Newswire Aggregator"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./newswire.db",
        description="Async database URL (SQLAlchemy format)",
    )

    # NewsAPI
    newsapi_base_url: str = Field(default="https://newsapi.org/v2")
    newsapi_key: Optional[str] = Field(default=None)
    newsapi_page_size: int = Field(default=20, ge=1, le=100)
    newsapi_language: str = Field(default="en")
    newsapi_country: str = Field(default="us")
    newsapi_timeout_seconds: float = Field(default=30.0, gt=0)

    # RSS
    rss_enabled: bool = Field(default=True)

    # Aggregation
    aggregation_workers: int = Field(
        default=5,
        ge=1,
        description="Size of the worker pool shared by source tasks in one run",
    )
    aggregation_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="Interval between scheduled aggregation runs",
    )
    aggregation_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Upper bound for one aggregation run (None = unbounded)",
    )

    # Retry
    retry_max_attempts: int = Field(
        default=3,
        ge=0,
        description="Additional fetch attempts after the first one",
    )
    retry_base_delay_ms: int = Field(default=1000, ge=0)
    retry_max_delay_ms: Optional[int] = Field(
        default=None,
        ge=0,
        description="Cap on a single backoff delay (None = uncapped)",
    )

    @field_validator("newsapi_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def retry_base_delay_seconds(self) -> float:
        return self.retry_base_delay_ms / 1000.0

    @property
    def retry_max_delay_seconds(self) -> Optional[float]:
        if self.retry_max_delay_ms is None:
            return None
        return self.retry_max_delay_ms / 1000.0

    @property
    def has_newsapi_key(self) -> bool:
        key = (self.newsapi_key or "").strip()
        return bool(key) and key not in PLACEHOLDER_API_KEYS


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
