"""Catalog source adapters."""

from __future__ import annotations

from datetime import date

from ...config import Settings
from ..http import RateLimitedClient
from .base import SourceAdapter
from .kitsu import KitsuSource
from .offline_db import OfflineDatabaseSource
from .tmdb import TmdbSource

SOURCES: dict[str, type[SourceAdapter]] = {
    KitsuSource.name: KitsuSource,
    OfflineDatabaseSource.name: OfflineDatabaseSource,
    TmdbSource.name: TmdbSource,
}


def create_source(
    name: str,
    client: RateLimitedClient,
    settings: Settings,
    *,
    today: date | None = None,
) -> SourceAdapter:
    """Instantiate the adapter registered under ``name``."""

    if name == KitsuSource.name:
        return KitsuSource(client, str(settings.kitsu_api_url))
    if name == OfflineDatabaseSource.name:
        return OfflineDatabaseSource(client, str(settings.offline_db_url), today=today)
    if name == TmdbSource.name:
        return TmdbSource(
            client,
            str(settings.tmdb_api_url),
            settings.tmdb_api_key,
            today=today,
        )
    raise ValueError(f"Unknown source {name!r}; expected one of {sorted(SOURCES)}")


__all__ = [
    "SOURCES",
    "KitsuSource",
    "OfflineDatabaseSource",
    "SourceAdapter",
    "TmdbSource",
    "create_source",
]
