"""Detail (meta) lookups for individual catalog entries."""

from __future__ import annotations

import logging
import re
from typing import Any

from .models import AnimeRecord
from .services.jikan import JikanClient
from .store import CatalogStore

logger = logging.getLogger(__name__)

META_TYPES = frozenset({"series", "movie", "anime"})

_PREFIXED_ID_RE = re.compile(r"^(mal|kitsu|anilist)-(\d+)$")


def parse_meta_id(meta_id: str) -> tuple[str, int | str] | None:
    """Map an addon id to ``(kind, value)`` for an external-id lookup.

    ``mal-1``, ``kitsu-1`` and ``anilist-1`` carry their kind in the prefix,
    a bare number is a MyAnimeList id and ``tt...`` is an IMDB id.
    """

    value = meta_id.strip()
    match = _PREFIXED_ID_RE.match(value)
    if match:
        return match.group(1), int(match.group(2))
    if value.isdigit():
        return "mal", int(value)
    if value.startswith("tt"):
        return "imdb", value
    return None


class MetaService:
    """Resolves meta requests and decorates them with a Jikan synopsis."""

    def __init__(
        self,
        store: CatalogStore,
        jikan: JikanClient | None = None,
    ) -> None:
        self._store = store
        self._jikan = jikan

    def resolve(self, meta_id: str) -> AnimeRecord | None:
        record = self._store.get_by_id(meta_id)
        if record is not None:
            return record
        parsed = parse_meta_id(meta_id)
        if parsed is None:
            return None
        kind, value = parsed
        return self._store.get_by_external_id(kind, value)

    async def get_meta_payload(self, content_type: str, meta_id: str) -> dict[str, Any]:
        logger.info("Meta request for %s/%s", content_type, meta_id)
        if content_type not in META_TYPES:
            return {"meta": None}

        await self._store.load()
        record = self.resolve(meta_id)
        if record is None:
            logger.info("Meta not found: %s", meta_id)
            return {"meta": None}

        synopsis: str | None = None
        if record.mal_id is not None and self._jikan is not None:
            synopsis = await self._jikan.fetch_synopsis(record.mal_id)
        return {"meta": record.to_meta(synopsis)}
