"""Addon configuration parsing and the Stremio manifest builder."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .catalogs import (
    AIRING,
    MOVIES,
    MOVIES_SEARCH,
    NEW_RELEASES,
    SEASON_RELEASES,
    SERIES_SEARCH,
    TOP_RATED,
    UPCOMING,
    parse_extra,
)
from .facets import FacetGroup, FacetValue, FilterOptions, parse_facet_label
from .seasons import (
    SEASON_NAMES,
    SeasonKey,
    current_season,
    is_future_season,
    parse_season_label,
)

ADDON_ID = "community.animestream"
ADDON_VERSION = "1.0.0"
ADDON_DESCRIPTION = (
    "Comprehensive anime catalog with Top Rated, Season Releases, Currently "
    "Airing and Movies catalogs, genre filtering and search."
)
ADDON_LOGO = "https://i.imgur.com/t8iqMpT.png"
ADDON_BACKGROUND = "https://i.imgur.com/Y8hMtVt.jpg"

FALLBACK_GENRES = (
    "Action",
    "Adventure",
    "Comedy",
    "Drama",
    "Fantasy",
    "Horror",
    "Mystery",
    "Psychological",
    "Romance",
    "Sci-Fi",
    "Slice of Life",
    "Sports",
    "Supernatural",
    "Thriller",
    "Mecha",
    "School",
    "Isekai",
)
FALLBACK_MOVIE_GENRES = (
    "Action",
    "Adventure",
    "Comedy",
    "Drama",
    "Fantasy",
    "Romance",
    "Sci-Fi",
)
FALLBACK_WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
FALLBACK_SEASON_YEARS = 6

_DISABLED_VALUES = {"0", "false", "no", "off"}


class AddonConfig(BaseModel):
    """User configuration carried in the ``/:config/`` path segment."""

    model_config = ConfigDict(populate_by_name=True)

    exclude_long_running: bool = Field(
        default=True,
        validation_alias=AliasChoices("excludeLongRunning", "exclude_long_running"),
    )
    show_counts: bool = Field(
        default=True,
        validation_alias=AliasChoices("showCounts", "show_counts"),
    )

    @field_validator("exclude_long_running", "show_counts", mode="before")
    @classmethod
    def _parse_flag(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        if value is None:
            return True
        return str(value).strip().lower() not in _DISABLED_VALUES

    @classmethod
    def from_path_segment(cls, segment: str | None) -> "AddonConfig":
        """Parse ``excludeLongRunning=false&showCounts=1`` style segments.

        Missing flags keep their defaults; a flag present without a value is
        enabled.
        """

        return cls.model_validate(parse_extra(segment))

    def to_path_segment(self) -> str:
        return (
            f"excludeLongRunning={str(self.exclude_long_running).lower()}"
            f"&showCounts={str(self.show_counts).lower()}"
        )


def _without_animation(values: list[str]) -> list[str]:
    return [value for value in values if not value.lower().startswith("animation")]


def genre_options(
    options: FilterOptions | None, show_counts: bool = True
) -> list[str]:
    if options is None or options.genres is None:
        return list(FALLBACK_GENRES)
    values = _without_animation(options.genres.options(show_counts))
    return values or list(FALLBACK_GENRES)


def movie_filter_options(
    options: FilterOptions | None, show_counts: bool = True
) -> list[str]:
    """Synthetic ``Upcoming``/``New Releases`` entries, then movie genres."""

    specials = (options.movie_special_filters if options else None) or {}
    upcoming = specials.get("upcoming", 0)
    new_releases = specials.get("newReleases", 0)
    if show_counts and (upcoming or new_releases):
        special_values = [
            FacetValue(UPCOMING, upcoming).format(),
            FacetValue(NEW_RELEASES, new_releases).format(),
        ]
    else:
        special_values = [UPCOMING, NEW_RELEASES]

    group: FacetGroup | None = None
    if options is not None:
        group = options.movie_genres or options.genres
    genres = _without_animation(group.options(show_counts)) if group else []
    return special_values + (genres or list(FALLBACK_MOVIE_GENRES))


def weekday_options(
    options: FilterOptions | None, show_counts: bool = True
) -> list[str]:
    if options is None or options.weekdays is None:
        return list(FALLBACK_WEEKDAYS)
    return options.weekdays.options(show_counts) or list(FALLBACK_WEEKDAYS)


def season_options(
    options: FilterOptions | None,
    show_counts: bool = True,
    today: date | None = None,
) -> list[str]:
    """Season labels with every future season folded into ``Upcoming``."""

    if options is None or options.seasons is None or not options.seasons.labels:
        return fallback_season_options(today)

    values: list[str] = []
    upcoming_count = 0
    has_upcoming = False
    for raw in options.seasons.options(show_counts):
        facet = parse_facet_label(raw)
        key = parse_season_label(facet.label)
        if key is not None and is_future_season(key.year, key.season, today):
            has_upcoming = True
            upcoming_count += facet.count or 0
            continue
        values.append(raw)

    if has_upcoming:
        upcoming = FacetValue(UPCOMING, upcoming_count if show_counts else None)
        values.insert(0, upcoming.format())
    return values


def fallback_season_options(today: date | None = None) -> list[str]:
    current = current_season(today)
    labels: list[str] = []
    for year in range(current.year, current.year - FALLBACK_SEASON_YEARS, -1):
        for season in reversed(SEASON_NAMES):
            if not is_future_season(year, season, today):
                labels.append(SeasonKey(year, season).label)
    return labels


def _browse_catalog(catalog_id: str, name: str, options: list[str]) -> dict[str, Any]:
    return {
        "id": catalog_id,
        "type": "anime",
        "name": name,
        "extra": [
            {"name": "genre", "options": options, "isRequired": False},
            {"name": "skip", "isRequired": False},
        ],
    }


def _search_catalog(catalog_id: str, content_type: str, name: str) -> dict[str, Any]:
    return {
        "id": catalog_id,
        "type": content_type,
        "name": name,
        "extra": [{"name": "search", "isRequired": True}, {"name": "skip"}],
    }


def build_manifest(
    options: FilterOptions | None,
    show_counts: bool = True,
    *,
    name: str = "AnimeStream",
    today: date | None = None,
) -> dict[str, Any]:
    """Return the addon manifest for the given facets and count preference."""

    return {
        "id": ADDON_ID,
        "version": ADDON_VERSION,
        "name": name,
        "description": ADDON_DESCRIPTION,
        "resources": ["catalog", "meta"],
        "types": ["anime", "series", "movie"],
        "idPrefixes": ["tt", "mal-", "kitsu-", "anilist-"],
        "catalogs": [
            _browse_catalog(
                TOP_RATED, "Top Rated", genre_options(options, show_counts)
            ),
            _browse_catalog(
                SEASON_RELEASES,
                "Season Releases",
                season_options(options, show_counts, today),
            ),
            _browse_catalog(
                AIRING, "Currently Airing", weekday_options(options, show_counts)
            ),
            _browse_catalog(
                MOVIES, "Movies", movie_filter_options(options, show_counts)
            ),
            _search_catalog(SERIES_SEARCH, "series", "Anime Series"),
            _search_catalog(MOVIES_SEARCH, "movie", "Anime Movies"),
        ],
        "behaviorHints": {"configurable": True, "configurationRequired": False},
        "logo": ADDON_LOGO,
        "background": ADDON_BACKGROUND,
    }
