"""Merge season entries that share an IMDB id into one catalog record."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from ..models import AnimeRecord

logger = logging.getLogger(__name__)


def _base_order(record: AnimeRecord) -> tuple[int, int]:
    return record.year or 9999, -(record.popularity or 0)


def merge_records(
    entries: Sequence[AnimeRecord], base: AnimeRecord | None = None
) -> AnimeRecord:
    """Fold several seasons of one show into one record.

    The base is ``base`` when given, else the earliest, most popular entry.

    Episode counts are summed, ratings averaged and genres unioned. Titles of
    the absorbed seasons become aliases. A show with any airing season stays
    airing, on that season's broadcast day.
    """

    ordered = sorted(entries, key=_base_order)
    if base is None:
        base = ordered[0]
    else:
        ordered = [base, *(entry for entry in ordered if entry is not base)]
    if len(ordered) == 1:
        return base

    ratings = [entry.rating for entry in ordered if entry.rating]
    genres: dict[str, None] = {}
    aliases: dict[str, None] = dict.fromkeys(base.aliases)
    for entry in ordered:
        genres.update(dict.fromkeys(entry.genres))
        if entry is not base:
            aliases.update(dict.fromkeys([entry.name, *entry.aliases]))
    aliases.pop(base.name, None)

    update: dict[str, object] = {
        "episode_count": sum(entry.episode_count or 0 for entry in ordered) or None,
        "genres": list(genres),
        "aliases": list(aliases),
        "merged_seasons": len(ordered),
    }
    if ratings:
        update["rating"] = sum(ratings) / len(ratings)
    airing = next((entry for entry in reversed(ordered) if entry.status == "ONGOING"), None)
    if airing is not None:
        update["status"] = "ONGOING"
        update["broadcast_day"] = airing.broadcast_day or base.broadcast_day
    return base.model_copy(update=update)


def group_seasons(records: Iterable[AnimeRecord]) -> list[AnimeRecord]:
    """Return one record per IMDB id followed by the records without one."""

    by_imdb: dict[str, list[AnimeRecord]] = {}
    unmatched: list[AnimeRecord] = []
    for record in records:
        if record.imdb_id:
            by_imdb.setdefault(record.imdb_id, []).append(record)
        else:
            unmatched.append(record)

    grouped = [merge_records(entries) for entries in by_imdb.values()]
    merged = sum(1 for entries in by_imdb.values() if len(entries) > 1)
    logger.info(
        "Merged %s multi-season entries; %s records remain",
        merged,
        len(grouped) + len(unmatched),
    )
    return grouped + unmatched
