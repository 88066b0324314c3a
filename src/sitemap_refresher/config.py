"""Application settings loaded from environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    DATABASE_URL: str
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "text"
    LOG_FILE: Path | None = None
    LOG_FILE_MAX_BYTES: int = Field(default=10_485_760, ge=1)
    LOG_FILE_BACKUP_COUNT: int = Field(default=5, ge=1)
    WEB_SERVER_URL: str = "https://storiny.com"
    CDN_SERVER_URL: str = "https://cdn.storiny.com"
    SITEMAPS_SERVER_URL: str = "https://sitemaps.storiny.com"
    SITEMAPS_BUCKET: str = "sitemaps"
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: SecretStr | None = None
    SITEMAP_GZIP_COMPRESSION_LEVEL: int = Field(default=9, ge=1, le=9)
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_JOBSTORE_URL: str = "sqlite:///./scheduler-jobs.sqlite"
    SITEMAP_REFRESH_CRON_HOUR: str = "3"
    SITEMAP_REFRESH_CRON_MINUTE: str = "0"
    SITEMAP_REFRESH_INTERVAL_SECONDS: int | None = Field(default=None, ge=1)
    SITEMAP_REFRESH_TIMEOUT_SECONDS: float = Field(default=3600, gt=0)

    @field_validator("LOG_FILE", "S3_ENDPOINT_URL", "S3_ACCESS_KEY_ID", mode="before")
    @classmethod
    def parse_optional_string(cls, value: object) -> object:
        if value in (None, ""):
            return None
        return value

    @field_validator("SITEMAP_REFRESH_INTERVAL_SECONDS", mode="before")
    @classmethod
    def parse_interval(cls, value: object) -> object:
        if value in (None, "", 0, "0"):
            return None
        return value

    @field_validator(
        "WEB_SERVER_URL", "CDN_SERVER_URL", "SITEMAPS_SERVER_URL", mode="after"
    )
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]
