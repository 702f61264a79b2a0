"""Series/movie classification shared by the catalogs, search and meta routes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .models import AnimeRecord

ContentType = Literal["movie", "series"]

# Specials at or above this runtime are compilation films.
LONG_SPECIAL_MINUTES = 100


def is_movie_type(record: "AnimeRecord") -> bool:
    """Return ``True`` for movies and long compilation specials."""

    if record.subtype == "movie":
        return True
    return (
        record.subtype == "special"
        and (record.runtime_minutes or 0) >= LONG_SPECIAL_MINUTES
    )


def is_series_type(record: "AnimeRecord") -> bool:
    """Return ``True`` for everything :func:`is_movie_type` rejects."""

    return not is_movie_type(record)


def classify(record: "AnimeRecord") -> ContentType:
    return "movie" if is_movie_type(record) else "series"
