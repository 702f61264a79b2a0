"""Fribb anime-lists cross-reference between MAL, Kitsu, AniList and IMDB."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..models import AnimeRecord, coerce_int
from .http import RateLimitedClient, UpstreamError

logger = logging.getLogger(__name__)

ID_KINDS = ("mal", "kitsu", "anilist")


@dataclass
class FribbMappings:
    """Lookup tables keyed by ``(kind, id)``.

    ``entries`` keeps the full cross-reference so that a record known by one
    id can be given its other ids as well.
    """

    entries: dict[tuple[str, int], dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_entries(cls, raw_entries: Iterable[Any]) -> "FribbMappings":
        mappings = cls()
        for raw in raw_entries:
            if not isinstance(raw, dict):
                continue
            entry = {
                "mal": coerce_int(raw.get("mal_id")),
                "kitsu": coerce_int(raw.get("kitsu_id")),
                "anilist": coerce_int(raw.get("anilist_id")),
                "imdb": _clean_imdb(raw.get("imdb_id")),
            }
            for kind in ID_KINDS:
                value = entry[kind]
                if value is not None:
                    mappings.entries.setdefault((kind, value), entry)
        return mappings

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, kind: str, value: int | None) -> dict[str, Any] | None:
        if value is None:
            return None
        return self.entries.get((kind, value))

    def entry_for(self, record: AnimeRecord) -> dict[str, Any] | None:
        for kind in ID_KINDS:
            entry = self.lookup(kind, getattr(record, f"{kind}_id"))
            if entry is not None:
                return entry
        return None

    def imdb_for(self, record: AnimeRecord) -> str | None:
        """Return the IMDB id for any of the record's anime ids."""

        for kind in ID_KINDS:
            entry = self.lookup(kind, getattr(record, f"{kind}_id"))
            if entry is not None and entry["imdb"]:
                return entry["imdb"]
        return None

    def fill_ids(self, record: AnimeRecord) -> AnimeRecord:
        """Copy missing MAL, Kitsu and AniList ids onto the record."""

        entry = self.entry_for(record)
        if entry is None:
            return record
        update = {
            f"{kind}_id": entry[kind]
            for kind in ID_KINDS
            if getattr(record, f"{kind}_id") is None and entry[kind] is not None
        }
        return record.model_copy(update=update) if update else record


def _clean_imdb(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    # A handful of entries list several ids; the first is the main show.
    first = value.split(",", 1)[0].strip()
    return first if first.startswith("tt") else None


async def load_fribb_mappings(client: RateLimitedClient, url: str) -> FribbMappings:
    logger.info("Loading Fribb mappings from %s", url)
    try:
        payload = await client.get_json(url)
    except UpstreamError as exc:
        logger.warning("Fribb mappings unavailable (%s); continuing without them", exc)
        return FribbMappings()
    if not isinstance(payload, list):
        logger.warning("Fribb mappings unavailable; continuing without them")
        return FribbMappings()
    mappings = FribbMappings.from_entries(payload)
    logger.info("Loaded %s Fribb id mappings", len(mappings))
    return mappings
