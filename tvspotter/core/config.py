"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_base_url: str = Field(default="https://api.themoviedb.org/3")
    tmdb_image_base: str = Field(default="https://image.tmdb.org/t/p")
    tmdb_language: str = Field(default="en-US")
    tmdb_timeout: float = Field(default=10.0)
    caldav_url: str | None = Field(default=None, alias="CALDAV_URL")
    caldav_username: str | None = Field(default=None, alias="CALDAV_USERNAME")
    caldav_password: str | None = Field(default=None, alias="CALDAV_PASSWORD")
    caldav_calendar_name: str = Field(default="TVspotter")
    calendar_ready_timeout: float = Field(default=30.0)
    release_regions: list[str] = Field(default_factory=lambda: ["US", "DE"])
    default_threshold_days: int = Field(default=4)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
