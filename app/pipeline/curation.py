"""Curated overrides and adult-content filtering applied during a build."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, Field, ValidationError

from ..models import AnimeRecord
from .grouping import merge_records

logger = logging.getLogger(__name__)

ADULT_GENRES = frozenset(
    {"hentai", "erotica", "smut", "adult", "18+", "r-18", "r18", "xxx"}
)
ADULT_STUDIOS = frozenset(
    {
        "pink pineapple",
        "milky animation label",
        "pixy",
        "queen bee",
        "mary jane",
        "pashmina",
        "lune pictures",
        "collaboration works",
        "studio eromatick",
        "platinum milky",
        "magin label",
        "bunnywalker",
        "gold bear",
        "cherry lips",
        "white bear",
    }
)


class Curation(BaseModel):
    """Hand-maintained corrections stored next to the catalog.

    ``hidden`` lists record ids to drop. ``parents`` maps a record id to the
    id of the show it belongs to; the child is folded into its parent.
    """

    hidden: list[str] = Field(default_factory=list)
    parents: dict[str, str] = Field(default_factory=dict)

    def apply(self, records: Iterable[AnimeRecord]) -> list[AnimeRecord]:
        hidden = set(self.hidden)
        records = list(records)
        kept = [record for record in records if record.id not in hidden]
        removed = len(records) - len(kept)
        if not self.parents:
            if removed:
                logger.info("Curation hid %s records", removed)
            return kept

        by_id = {record.id: record for record in kept}
        children: dict[str, list[AnimeRecord]] = {}
        for child_id, parent_id in self.parents.items():
            child = by_id.get(child_id)
            if child is None or parent_id not in by_id or child_id == parent_id:
                continue
            if parent_id in self.parents:
                logger.warning("Ignoring nested curation parent %s -> %s", child_id, parent_id)
                continue
            children.setdefault(parent_id, []).append(child)

        absorbed = {child.id for group in children.values() for child in group}
        curated: list[AnimeRecord] = []
        for record in kept:
            if record.id in absorbed:
                continue
            group = children.get(record.id)
            curated.append(merge_records([record, *group], base=record) if group else record)
        logger.info(
            "Curation hid %s and folded %s records",
            removed,
            len(absorbed),
        )
        return curated


def load_curation(path: Path | None) -> Curation:
    """Read ``curation.json``; a missing or invalid file means no curation."""

    if path is None or not path.exists():
        return Curation()
    try:
        with path.open("r", encoding="utf-8") as handle:
            return Curation.model_validate(json.load(handle))
    except (OSError, ValueError, ValidationError) as exc:
        logger.warning("Ignoring curation file %s: %s", path, exc)
        return Curation()


def adult_reasons(record: AnimeRecord) -> list[str]:
    reasons = [
        f"genre:{value}"
        for value in (*record.genres, *record.tags)
        if value.lower() in ADULT_GENRES
    ]
    reasons.extend(
        f"studio:{studio}" for studio in record.studios if studio.lower() in ADULT_STUDIOS
    )
    return reasons


def is_adult(record: AnimeRecord) -> bool:
    return bool(adult_reasons(record))


def filter_nsfw(records: Iterable[AnimeRecord]) -> list[AnimeRecord]:
    kept: list[AnimeRecord] = []
    removed = 0
    for record in records:
        if is_adult(record):
            removed += 1
            logger.debug("Dropping %s (%s)", record.id, ", ".join(adult_reasons(record)))
            continue
        kept.append(record)
    logger.info("Removed %s adult titles", removed)
    return kept
