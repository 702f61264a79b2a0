"""Free-text search over the catalog with additive relevance scoring."""

from __future__ import annotations

from typing import Iterable

from .classification import ContentType, classify
from .models import AnimeRecord

MIN_QUERY_LENGTH = 2

EXACT_NAME_SCORE = 1000
PREFIX_NAME_SCORE = 500
SUBSTRING_NAME_SCORE = 200
NAME_WORD_SCORE = 50
GENRE_WORD_SCORE = 30
STUDIO_WORD_SCORE = 30
DESCRIPTION_SCORE = 20


def score_record(query: str, record: AnimeRecord) -> float:
    """Return the relevance of ``record`` for ``query``; ``0`` means no match.

    The title contributes the most (exact, then prefix, then substring), then
    individual query words found in the title, genres and studios, then the
    whole query appearing in the description. A matching record gets a small
    bonus of ``rating / 10`` so better rated titles win ties.
    """

    needle = query.strip().lower()
    if len(needle) < MIN_QUERY_LENGTH:
        return 0.0
    words = [word for word in needle.split() if len(word) > 1]

    name = record.name.lower()
    genres = [genre.lower() for genre in record.genres]
    studios = [studio.lower() for studio in record.studios]

    score = 0
    if name == needle:
        score += EXACT_NAME_SCORE
    elif name.startswith(needle):
        score += PREFIX_NAME_SCORE
    elif needle in name:
        score += SUBSTRING_NAME_SCORE

    for word in words:
        if word in name:
            score += NAME_WORD_SCORE
        if any(word in genre for genre in genres):
            score += GENRE_WORD_SCORE
        if any(word in studio for studio in studios):
            score += STUDIO_WORD_SCORE

    if needle in (record.description or "").lower():
        score += DESCRIPTION_SCORE

    if score <= 0:
        return 0.0
    return score + (record.rating or 0.0) / 10


def search_records(
    records: Iterable[AnimeRecord],
    query: str | None,
    target_type: ContentType | None = None,
) -> list[AnimeRecord]:
    """Rank matching records by score, then rating, both descending."""

    if not query or len(query.strip()) < MIN_QUERY_LENGTH:
        return []

    scored: list[tuple[float, float, AnimeRecord]] = []
    for record in records:
        if target_type is not None and classify(record) != target_type:
            continue
        score = score_record(query, record)
        if score > 0:
            scored.append((score, record.rating or 0.0, record))

    scored.sort(key=lambda item: (-item[0], -item[1]))
    return [record for _, _, record in scored]
