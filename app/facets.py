"""Facet (filter option) parsing, formatting and counting."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .classification import is_movie_type, is_series_type
from .models import WEEKDAYS, AnimeRecord
from .seasons import SeasonKey

_COUNT_SUFFIX_RE = re.compile(r"^(?P<label>.*?)\s*\((?P<count>\d+)\)\s*$")


@dataclass(frozen=True, slots=True)
class FacetValue:
    """A facet label with its optional occurrence count."""

    label: str
    count: int | None = None

    def format(self) -> str:
        if self.count is None:
            return self.label
        return f"{self.label} ({self.count})"


def parse_facet_label(value: str) -> FacetValue:
    """Split ``"Friday (12)"`` into ``FacetValue("Friday", 12)``."""

    text = value.strip()
    match = _COUNT_SUFFIX_RE.match(text)
    if not match:
        return FacetValue(text)
    return FacetValue(match.group("label").strip(), int(match.group("count")))


def strip_count(value: str | None) -> str | None:
    """Return the display label without its trailing count suffix."""

    if value is None:
        return None
    label = parse_facet_label(value).label
    return label or None


class FacetGroup(BaseModel):
    """Facet labels with and without counts, in display order."""

    model_config = ConfigDict(populate_by_name=True)

    with_counts: list[str] = Field(default_factory=list, alias="withCounts")
    labels: list[str] = Field(default_factory=list, alias="list")

    @field_validator("labels", mode="before")
    @classmethod
    def _flatten_named_entries(cls, value: object) -> object:
        # Older facet files stored ``{"name": ..., "count": ...}`` objects.
        if not isinstance(value, list):
            return value
        flattened: list[str] = []
        for entry in value:
            if isinstance(entry, dict):
                entry = entry.get("name")
            if entry:
                flattened.append(str(entry))
        return flattened

    @classmethod
    def from_counts(cls, counts: Iterable[tuple[str, int]]) -> "FacetGroup":
        values = [FacetValue(label, count) for label, count in counts]
        return cls(
            with_counts=[value.format() for value in values],
            labels=[value.label for value in values],
        )

    def options(self, show_counts: bool) -> list[str]:
        return list(self.with_counts if show_counts else self.labels)


class FilterOptions(BaseModel):
    """Precomputed facets derived from the catalog."""

    model_config = ConfigDict(populate_by_name=True)

    genres: FacetGroup | None = None
    seasons: FacetGroup | None = None
    weekdays: FacetGroup | None = None
    movie_genres: FacetGroup | None = Field(default=None, alias="movieGenres")
    studios: FacetGroup | None = None
    movie_special_filters: dict[str, int] = Field(
        default_factory=dict, alias="movieSpecialFilters"
    )
    stats: dict[str, int] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def _ranked(counter: Counter[str]) -> list[tuple[str, int]]:
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))


# Studios need at least this many titles to be offered as a facet.
MIN_STUDIO_TITLES = 2
MAX_STUDIO_FACETS = 100


def build_filter_options(
    records: Iterable[AnimeRecord], today: date | None = None
) -> FilterOptions:
    """Count genre, season and weekday facets over a catalog."""

    today = today or date.today()
    catalog = list(records)
    series = [record for record in catalog if is_series_type(record)]
    movies = [record for record in catalog if is_movie_type(record)]

    series_genres = Counter(genre for record in series for genre in record.genres)
    movie_genres = Counter(genre for record in movies for genre in record.genres)
    studios = Counter(studio for record in catalog for studio in record.studios)
    ranked_studios = [
        item for item in _ranked(studios) if item[1] >= MIN_STUDIO_TITLES
    ][:MAX_STUDIO_FACETS]

    season_counts: Counter[SeasonKey] = Counter(
        SeasonKey(record.year, record.season)
        for record in series
        if record.year and record.season
    )
    ordered_seasons = sorted(
        season_counts.items(), key=lambda item: item[0].sort_key(), reverse=True
    )

    ongoing = [
        record
        for record in series
        if record.status == "ONGOING" and record.broadcast_day
    ]
    weekday_counts = Counter(record.broadcast_day for record in ongoing)
    ordered_weekdays = [
        (day.capitalize(), weekday_counts[day])
        for day in WEEKDAYS
        if weekday_counts[day]
    ]

    upcoming_movies = sum(1 for record in movies if record.status != "FINISHED")
    new_release_movies = sum(
        1
        for record in movies
        if record.status == "FINISHED" and (record.year or 0) >= today.year - 1
    )

    return FilterOptions(
        genres=FacetGroup.from_counts(_ranked(series_genres)),
        movie_genres=FacetGroup.from_counts(_ranked(movie_genres)),
        seasons=FacetGroup.from_counts(
            (key.label, count) for key, count in ordered_seasons
        ),
        weekdays=FacetGroup.from_counts(ordered_weekdays),
        studios=FacetGroup.from_counts(ranked_studios),
        movie_special_filters={
            "upcoming": upcoming_movies,
            "newReleases": new_release_movies,
        },
        stats={
            "totalAnime": len(catalog),
            "totalSeries": len(series),
            "totalMovies": len(movies),
            "genreCount": len(series_genres),
            "movieGenreCount": len(movie_genres),
            "seasonCount": len(season_counts),
            "ongoingCount": len(ongoing),
            "studioCount": len(studios),
        },
    )
