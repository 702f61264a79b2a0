"""Catalog handlers: filter, sort and paginate the loaded anime catalog."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Sequence
from urllib.parse import unquote

from pydantic import BaseModel, Field, field_validator

from .classification import is_movie_type, is_series_type
from .facets import strip_count
from .models import AnimeRecord
from .search import search_records
from .seasons import SEASON_ORDER, is_future_season, parse_season_label
from .store import CatalogStore

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

TOP_RATED = "anime-top-rated"
SEASON_RELEASES = "anime-season-releases"
AIRING = "anime-airing"
MOVIES = "anime-movies"
SERIES_SEARCH = "anime-series-search"
MOVIES_SEARCH = "anime-movies-search"

BROWSE_CATALOGS = (TOP_RATED, SEASON_RELEASES, AIRING, MOVIES)
SEARCH_CATALOGS = {SERIES_SEARCH: "series", MOVIES_SEARCH: "movie"}

UPCOMING = "Upcoming"
NEW_RELEASES = "New Releases"

# Airing titles past these limits are treated as long-running.
LONG_RUNNING_EPISODES = 500
LONG_RUNNING_MAX_AGE_YEARS = 5
LONG_RUNNING_LIKELY_EPISODES = 200


class CatalogExtra(BaseModel):
    """Parsed ``genre=...&search=...&skip=...`` catalog extra segment."""

    genre: str | None = None
    search: str | None = None
    skip: int = Field(default=0, ge=0)

    @field_validator("genre", "search", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("skip", mode="before")
    @classmethod
    def _parse_skip(cls, value: object) -> int:
        try:
            skip = int(str(value).strip())
        except (TypeError, ValueError):
            return 0
        return max(skip, 0)

    @classmethod
    def from_path_segment(cls, segment: str | None) -> "CatalogExtra":
        return cls.model_validate(parse_extra(segment))


def parse_extra(segment: str | None) -> dict[str, str]:
    """Split an ``&``-joined ``key=value`` segment, URL-decoding each value."""

    values: dict[str, str] = {}
    if not segment:
        return values
    for pair in segment.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        key = unquote(key).strip()
        if key:
            values[key] = unquote(value.replace("+", " "))
    return values


def paginate(items: Sequence[AnimeRecord], skip: int = 0) -> list[AnimeRecord]:
    """Return one page starting at ``skip``; out-of-range pages are empty."""

    start = max(skip, 0)
    return list(items[start : start + PAGE_SIZE])


def _rating(record: AnimeRecord) -> float:
    return record.rating or 0.0


def _by_rating(records: Iterable[AnimeRecord]) -> list[AnimeRecord]:
    return sorted(records, key=lambda record: -_rating(record))


def _has_genre(record: AnimeRecord, genre: str) -> bool:
    wanted = genre.lower()
    return any(value.lower() == wanted for value in record.genres)


def _is_hentai(record: AnimeRecord) -> bool:
    return any(value.lower() == "hentai" for value in (*record.tags, *record.genres))


def is_long_running(record: AnimeRecord, today: date | None = None) -> bool:
    today = today or date.today()
    episodes = record.episode_count or 0
    if episodes >= LONG_RUNNING_EPISODES:
        return True
    if record.year and record.year < today.year - LONG_RUNNING_MAX_AGE_YEARS:
        return True
    return episodes >= LONG_RUNNING_LIKELY_EPISODES


def handle_top_rated(
    records: Iterable[AnimeRecord], genre: str | None = None
) -> list[AnimeRecord]:
    filtered = [record for record in records if is_series_type(record)]
    label = strip_count(genre)
    if label:
        filtered = [record for record in filtered if _has_genre(record, label)]
    return _by_rating(filtered)


def handle_season_releases(
    records: Iterable[AnimeRecord],
    season: str | None = None,
    today: date | None = None,
) -> list[AnimeRecord]:
    """Series by broadcast season, newest season first.

    ``Upcoming`` selects every future season, ``"2025 - Winter"`` a single
    season, and no filter all seasons that have already started.
    """

    filtered = [
        record
        for record in records
        if is_series_type(record) and record.year and record.season
    ]
    label = strip_count(season)
    if label and label.lower() == UPCOMING.lower():
        filtered = [
            record
            for record in filtered
            if is_future_season(record.year, record.season, today)
        ]
    elif label:
        key = parse_season_label(label)
        if key is not None:
            filtered = [
                record
                for record in filtered
                if record.year == key.year and record.season == key.season
            ]
    else:
        filtered = [
            record
            for record in filtered
            if not is_future_season(record.year, record.season, today)
        ]

    return sorted(
        filtered,
        key=lambda record: (
            -(record.year or 0),
            -SEASON_ORDER.get(record.season or "", -1),
            -_rating(record),
        ),
    )


def handle_airing(
    records: Iterable[AnimeRecord],
    weekday: str | None = None,
    exclude_long_running: bool = True,
    today: date | None = None,
) -> list[AnimeRecord]:
    filtered = [
        record
        for record in records
        if is_series_type(record)
        and record.status == "ONGOING"
        and not _is_hentai(record)
    ]
    if exclude_long_running:
        filtered = [
            record for record in filtered if not is_long_running(record, today)
        ]
    label = strip_count(weekday)
    if label:
        day = label.lower()
        filtered = [record for record in filtered if record.broadcast_day == day]
    return _by_rating(filtered)


def handle_movies(
    records: Iterable[AnimeRecord],
    genre: str | None = None,
    today: date | None = None,
) -> list[AnimeRecord]:
    filtered = [record for record in records if is_movie_type(record)]
    label = strip_count(genre)
    if label == UPCOMING:
        upcoming = [record for record in filtered if record.status != "FINISHED"]
        return sorted(upcoming, key=lambda record: -(record.year or 0))
    if label == NEW_RELEASES:
        current_year = (today or date.today()).year
        recent = [
            record
            for record in filtered
            if record.status == "FINISHED" and (record.year or 0) >= current_year - 1
        ]
        return sorted(
            recent, key=lambda record: (-(record.year or 0), -_rating(record))
        )
    if label:
        filtered = [record for record in filtered if _has_genre(record, label)]
    return _by_rating(filtered)


class CatalogService:
    """Resolves catalog requests against a :class:`CatalogStore`."""

    def __init__(self, store: CatalogStore) -> None:
        self._store = store

    async def get_catalog_payload(
        self,
        content_type: str,
        catalog_id: str,
        extra: CatalogExtra,
        *,
        exclude_long_running: bool = True,
        today: date | None = None,
    ) -> dict[str, Any]:
        target_type = SEARCH_CATALOGS.get(catalog_id)
        if target_type is not None:
            if not extra.search:
                return {"metas": []}
            await self._store.load()
            logger.info("Search %r in %s", extra.search, catalog_id)
            results = search_records(self._store.get_all(), extra.search, target_type)
            return self._page(results, extra.skip)

        if content_type != "anime" or catalog_id not in BROWSE_CATALOGS:
            return {"metas": []}

        logger.info(
            "Catalog %s skip=%s filter=%r excludeLongRunning=%s",
            catalog_id,
            extra.skip,
            extra.genre,
            exclude_long_running,
        )
        await self._store.load()
        if not self._store.is_ready():
            logger.warning("Catalog not loaded; returning empty %s", catalog_id)
            return {"metas": []}

        records = self._store.get_all()
        if catalog_id == TOP_RATED:
            results = handle_top_rated(records, extra.genre)
        elif catalog_id == SEASON_RELEASES:
            results = handle_season_releases(records, extra.genre, today)
        elif catalog_id == AIRING:
            results = handle_airing(
                records, extra.genre, exclude_long_running, today
            )
        else:
            results = handle_movies(records, extra.genre, today)
        return self._page(results, extra.skip)

    @staticmethod
    def _page(results: Sequence[AnimeRecord], skip: int) -> dict[str, Any]:
        return {"metas": [record.to_catalog_meta() for record in paginate(results, skip)]}
