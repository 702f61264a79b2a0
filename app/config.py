"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="AnimeStream", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=7000, alias="PORT")
    base_url: HttpUrl | None = Field(default=None, alias="BASE_URL")

    data_dir: Path = Field(default=Path("data"), alias="DATA_DIR")
    catalog_file: Path | None = Field(default=None, alias="CATALOG_FILE")
    filter_options_file: Path | None = Field(
        default=None, alias="FILTER_OPTIONS_FILE"
    )
    curation_file: Path | None = Field(default=None, alias="CURATION_FILE")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: Literal["development", "production"] = Field(
        default="production", alias="ENVIRONMENT"
    )

    jikan_api_url: HttpUrl = Field(
        default="https://api.jikan.moe/v4", alias="JIKAN_API_URL"
    )
    fetch_synopsis: bool = Field(default=True, alias="FETCH_SYNOPSIS")
    synopsis_cache_ttl: int = Field(
        default=86_400, alias="SYNOPSIS_CACHE_TTL", ge=0
    )
    synopsis_cache_size: int = Field(
        default=1_000, alias="SYNOPSIS_CACHE_SIZE", ge=1
    )

    kitsu_api_url: HttpUrl = Field(
        default="https://kitsu.io/api/edge", alias="KITSU_API_URL"
    )
    cinemeta_url: HttpUrl = Field(
        default="https://v3-cinemeta.strem.io", alias="CINEMETA_URL"
    )
    fribb_url: HttpUrl = Field(
        default=(
            "https://raw.githubusercontent.com/Fribb/anime-lists/master/"
            "anime-list-full.json"
        ),
        alias="FRIBB_URL",
    )
    offline_db_url: HttpUrl = Field(
        default=(
            "https://raw.githubusercontent.com/manami-project/"
            "anime-offline-database/master/anime-offline-database-minified.json"
        ),
        alias="OFFLINE_DB_URL",
    )
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")

    request_delay: float = Field(default=0.15, alias="REQUEST_DELAY", ge=0)
    request_retries: int = Field(default=3, alias="REQUEST_RETRIES", ge=0, le=10)
    rate_limit_wait: float = Field(default=30.0, alias="RATE_LIMIT_WAIT", ge=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        if value is None:
            return "INFO"
        cleaned = str(value).strip().upper()
        return cleaned or "INFO"

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def catalog_path(self) -> Path:
        """Return the catalog file, preferring the gzip copy when present."""

        if self.catalog_file is not None:
            return self.catalog_file
        compressed = self.data_dir / "catalog.json.gz"
        if compressed.exists():
            return compressed
        return self.data_dir / "catalog.json"

    @property
    def filter_options_path(self) -> Path:
        return self.filter_options_file or self.data_dir / "filter-options.json"

    @property
    def curation_path(self) -> Path:
        return self.curation_file or self.data_dir / "curation.json"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
