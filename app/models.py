"""Pydantic models describing catalog records and their Stremio payloads."""

from __future__ import annotations

import re
from typing import Any, Literal
from urllib.parse import quote

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .classification import ContentType, classify

Subtype = Literal["tv", "movie", "OVA", "ONA", "special", "music"]
Status = Literal["ONGOING", "FINISHED", "UPCOMING"]
Season = Literal["winter", "spring", "summer", "fall"]

WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

CATALOG_DESCRIPTION_LIMIT = 200
MAX_ALIASES = 10

_SUBTYPES: dict[str, Subtype] = {
    "tv": "tv",
    "tv_short": "tv",
    "movie": "movie",
    "ova": "OVA",
    "ona": "ONA",
    "special": "special",
    "tv_special": "special",
    "music": "music",
}
_STATUSES: dict[str, Status] = {
    "ONGOING": "ONGOING",
    "CURRENT": "ONGOING",
    "AIRING": "ONGOING",
    "CURRENTLY AIRING": "ONGOING",
    "RETURNING SERIES": "ONGOING",
    "FINISHED": "FINISHED",
    "FINISHED AIRING": "FINISHED",
    "ENDED": "FINISHED",
    "UPCOMING": "UPCOMING",
    "UNRELEASED": "UPCOMING",
    "TBA": "UPCOMING",
    "NOT YET AIRED": "UPCOMING",
    "IN PRODUCTION": "UPCOMING",
}
_SEASONS: dict[str, Season] = {
    "winter": "winter",
    "spring": "spring",
    "summer": "summer",
    "fall": "fall",
    "autumn": "fall",
}

_HOURS_RE = re.compile(r"(\d+)\s*(?:h|hr|hrs|hour|hours)\b", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*(?:m|min|mins|minute|minutes)\b", re.IGNORECASE)
_NUMBER_RE = re.compile(r"\d+")


def parse_runtime_minutes(value: object) -> int | None:
    """Normalise ``"24 min"``, ``"1 hr 45 min"``, ``24`` or ``24.0`` to minutes."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        minutes = int(round(value))
        return minutes if minutes > 0 else None
    text = str(value).strip()
    if not text:
        return None
    hours = _HOURS_RE.search(text)
    minutes = _MINUTES_RE.search(text)
    if hours or minutes:
        total = int(hours.group(1)) * 60 if hours else 0
        total += int(minutes.group(1)) if minutes else 0
        return total or None
    number = _NUMBER_RE.search(text)
    if not number:
        return None
    return int(number.group(0)) or None


def coerce_int(value: object) -> int | None:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        try:
            return int(float(str(value)))
        except (TypeError, ValueError):
            return None


class AnimeRecord(BaseModel):
    """One normalised catalog entry.

    Every loose shape found in historical catalog files is accepted on input
    (``malId`` or ``mal_id``, runtime strings, lower-case statuses, ...) and
    reduced to a single canonical form. Records are immutable once built.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str
    imdb_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("imdb_id", "imdbId"),
        serialization_alias="imdb_id",
    )
    mal_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("mal_id", "malId"),
        serialization_alias="mal_id",
    )
    kitsu_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("kitsu_id", "kitsuId"),
        serialization_alias="kitsu_id",
    )
    anilist_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("anilist_id", "anilistId"),
        serialization_alias="anilist_id",
    )
    tmdb_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("tmdb_id", "tmdbId"),
        serialization_alias="tmdb_id",
    )

    name: str
    description: str | None = None
    genres: list[str] = Field(default_factory=list)
    studios: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    cast: list[str] = Field(default_factory=list)

    subtype: Subtype | None = None
    status: Status | None = None
    year: int | None = None
    season: Season | None = None
    broadcast_day: str | None = Field(
        default=None,
        validation_alias=AliasChoices("broadcastDay", "broadcast_day"),
        serialization_alias="broadcastDay",
    )

    poster: str | None = None
    background: str | None = None
    logo: str | None = None

    rating: float | None = None
    episode_count: int | None = Field(
        default=None,
        validation_alias=AliasChoices("episodeCount", "episode_count", "episodes"),
        serialization_alias="episodeCount",
    )
    runtime_minutes: int | None = Field(
        default=None,
        validation_alias=AliasChoices("runtime", "runtimeMinutes", "runtime_minutes"),
        serialization_alias="runtime",
    )
    popularity: int | None = None
    merged_seasons: int | None = Field(
        default=None,
        validation_alias=AliasChoices("mergedSeasons", "_mergedSeasons", "merged_seasons"),
        serialization_alias="mergedSeasons",
    )

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("id"):
            return data
        payload = dict(data)
        imdb_id = payload.get("imdb_id") or payload.get("imdbId")
        if imdb_id:
            payload["id"] = str(imdb_id)
            return payload
        for prefix in ("mal", "kitsu", "anilist"):
            value = payload.get(f"{prefix}_id") or payload.get(f"{prefix}Id")
            if value:
                payload["id"] = f"{prefix}-{value}"
                break
        return payload

    @field_validator("id", "name", mode="before")
    @classmethod
    def _strip_required(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator(
        "imdb_id", "description", "poster", "background", "logo", mode="before"
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator(
        "mal_id", "kitsu_id", "anilist_id", "tmdb_id", "year", "episode_count",
        "popularity", "merged_seasons",
        mode="before",
    )
    @classmethod
    def _parse_optional_int(cls, value: object) -> int | None:
        return coerce_int(value)

    @field_validator("genres", "studios", "aliases", "tags", "cast", mode="before")
    @classmethod
    def _clean_strings(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        cleaned: list[str] = []
        for entry in value:  # type: ignore[union-attr]
            if isinstance(entry, dict):
                entry = entry.get("name")
            if entry is None:
                continue
            text = str(entry).strip()
            if text and text not in cleaned:
                cleaned.append(text)
        return cleaned

    @field_validator("subtype", mode="before")
    @classmethod
    def _normalise_subtype(cls, value: object) -> Subtype | None:
        if value is None:
            return None
        return _SUBTYPES.get(str(value).strip().lower().replace(" ", "_"))

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, value: object) -> Status | None:
        if value is None:
            return None
        return _STATUSES.get(str(value).strip().upper())

    @field_validator("season", mode="before")
    @classmethod
    def _normalise_season(cls, value: object) -> Season | None:
        if value is None:
            return None
        return _SEASONS.get(str(value).strip().lower())

    @field_validator("broadcast_day", mode="before")
    @classmethod
    def _normalise_weekday(cls, value: object) -> str | None:
        if value is None:
            return None
        day = str(value).strip().lower()
        if day not in WEEKDAYS and day.endswith("s"):
            day = day[:-1]
        return day if day in WEEKDAYS else None

    @field_validator("rating", mode="before")
    @classmethod
    def _normalise_rating(cls, value: object) -> float | None:
        if value is None or isinstance(value, bool) or value == "":
            return None
        try:
            rating = float(str(value))
        except (TypeError, ValueError):
            return None
        if rating != rating or rating <= 0 or rating > 100:
            return None
        if rating > 10:
            rating = rating / 10
        return rating

    @field_validator("runtime_minutes", mode="before")
    @classmethod
    def _normalise_runtime(cls, value: object) -> int | None:
        return parse_runtime_minutes(value)

    @property
    def content_type(self) -> ContentType:
        return classify(self)

    def external_ids(self) -> dict[str, int | str]:
        """Return the populated external identifiers keyed by kind."""

        ids: dict[str, int | str | None] = {
            "imdb": self.imdb_id,
            "mal": self.mal_id,
            "kitsu": self.kitsu_id,
            "anilist": self.anilist_id,
        }
        return {kind: value for kind, value in ids.items() if value is not None}

    def to_catalog_dict(self) -> dict[str, Any]:
        """Return the on-disk representation used in catalog files."""

        return self.model_dump(by_alias=True, exclude_none=True)

    def to_catalog_meta(self) -> dict[str, Any]:
        """Return a Stremio meta preview for catalog listings."""

        meta: dict[str, Any] = {
            "id": self.id,
            "type": self.content_type,
            "name": self.name,
        }
        if self.imdb_id:
            meta["imdb_id"] = self.imdb_id
        if self.poster:
            meta["poster"] = _preview_poster(self.poster)
        if self.background:
            meta["background"] = self.background
        if self.logo:
            meta["logo"] = self.logo
        if self.description:
            description = self.description
            if len(description) > CATALOG_DESCRIPTION_LIMIT:
                description = description[:CATALOG_DESCRIPTION_LIMIT] + "..."
            meta["description"] = description
        if self.genres:
            meta["genres"] = list(self.genres)
        if self.rating is not None:
            meta["imdbRating"] = f"{self.rating:.1f}"
        if self.year:
            meta["releaseInfo"] = str(self.year)
            meta["year"] = self.year
        if self.runtime_minutes:
            meta["runtime"] = f"{self.runtime_minutes} min"
        return meta

    def to_meta(self, synopsis: str | None = None) -> dict[str, Any]:
        """Return the full Stremio meta object for the detail page."""

        links = [
            {
                "name": genre,
                "category": "Genres",
                "url": f"stremio:///search?search={quote(genre, safe='')}",
            }
            for genre in self.genres
        ]
        links.extend(
            {
                "name": studio,
                "category": "Studios",
                "url": f"stremio:///search?search={quote(studio, safe='')}",
            }
            for studio in self.studios
        )

        meta: dict[str, Any] = {
            "id": self.id,
            "type": self.content_type,
            "name": self.name,
            "description": synopsis or self.description or "",
            "genres": list(self.genres),
            "behaviorHints": {
                "defaultVideoId": self.imdb_id or self.id,
                "hasScheduledVideos": self.status == "ONGOING",
            },
        }
        if self.poster:
            meta["poster"] = self.poster
        background = self.background or self.poster
        if background:
            meta["background"] = background
        if self.logo:
            meta["logo"] = self.logo
        if self.cast:
            meta["cast"] = list(self.cast)
        if self.runtime_minutes:
            meta["runtime"] = f"{self.runtime_minutes} min"
        if self.year:
            meta["releaseInfo"] = str(self.year)
            meta["year"] = self.year
        if self.imdb_id:
            meta["imdb_id"] = self.imdb_id
        if self.rating is not None:
            meta["imdbRating"] = f"{self.rating:.1f}"
        if links:
            meta["links"] = links
        if self.aliases:
            meta["aliases"] = self.aliases[:MAX_ALIASES]
        return meta


def _preview_poster(url: str) -> str:
    # Legacy Kitsu paths serve every size; the hashed format only has large.
    if "/poster_images/" in url:
        return url.replace("/large.", "/medium.")
    return url
