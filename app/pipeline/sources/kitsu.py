"""Kitsu edge API source."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

from ...models import AnimeRecord, coerce_int
from ...seasons import season_from_date
from ..http import RateLimitedClient, UpstreamError
from .base import SourceAdapter

logger = logging.getLogger(__name__)

KITSU_PAGE_SIZE = 20
KITSU_HEADERS = {"Accept": "application/vnd.api+json"}


class KitsuSource(SourceAdapter):
    """Most popular Kitsu titles first (``sort=-userCount``)."""

    name = "kitsu"

    def __init__(self, client: RateLimitedClient, api_url: str) -> None:
        super().__init__(client)
        self._api_url = api_url.rstrip("/")

    async def fetch(self, limit: int | None = None) -> AsyncIterator[dict[str, Any]]:
        offset = 0
        yielded = 0
        while limit is None or yielded < limit:
            try:
                payload = await self._client.get_json(
                    f"{self._api_url}/anime",
                    params={
                        "page[limit]": KITSU_PAGE_SIZE,
                        "page[offset]": offset,
                        "sort": "-userCount",
                    },
                    headers=KITSU_HEADERS,
                )
            except UpstreamError as exc:
                logger.warning("Kitsu page at offset %s failed: %s", offset, exc)
                return
            data = payload.get("data") if isinstance(payload, dict) else None
            if not data:
                return
            for entry in data:
                if limit is not None and yielded >= limit:
                    return
                yielded += 1
                yield entry
            if not (payload.get("links") or {}).get("next"):
                return
            offset += KITSU_PAGE_SIZE
            if yielded % 200 == 0:
                logger.info("Kitsu: fetched %s titles", yielded)

    async def fetch_genres(self, kitsu_id: str) -> list[str]:
        try:
            payload = await self._client.get_json(
                f"{self._api_url}/anime/{kitsu_id}/genres", headers=KITSU_HEADERS
            )
        except UpstreamError as exc:
            logger.warning("Kitsu genres for %s unavailable: %s", kitsu_id, exc)
            return []
        if not isinstance(payload, dict):
            return []
        genres: list[str] = []
        for entry in payload.get("data") or []:
            name = (entry.get("attributes") or {}).get("name")
            if name:
                genres.append(name)
        return genres

    async def normalize(self, raw: dict[str, Any]) -> AnimeRecord | None:
        kitsu_id = coerce_int(raw.get("id"))
        attributes = raw.get("attributes") or {}
        titles = attributes.get("titles") or {}
        name = (
            attributes.get("canonicalTitle")
            or titles.get("en")
            or titles.get("en_jp")
        )
        if kitsu_id is None or not name:
            return None

        start_date = attributes.get("startDate")
        poster = attributes.get("posterImage") or {}
        cover = attributes.get("coverImage") or {}
        aliases = [
            title
            for title in (*titles.values(), *(attributes.get("abbreviatedTitles") or []))
            if isinstance(title, str) and title and title != name
        ]

        return AnimeRecord.model_validate(
            {
                "kitsu_id": kitsu_id,
                "name": name,
                "description": attributes.get("synopsis"),
                "year": start_date[:4] if start_date else None,
                "season": season_from_date(start_date),
                "status": (attributes.get("status") or "").upper() or None,
                # Kitsu rates out of 100; the record scales it to 0-10.
                "rating": attributes.get("averageRating"),
                "poster": poster.get("large") or poster.get("original"),
                "background": cover.get("large") or cover.get("original"),
                "genres": await self.fetch_genres(str(kitsu_id)),
                "episodes": attributes.get("episodeCount"),
                "runtime": attributes.get("episodeLength"),
                "subtype": attributes.get("subtype"),
                "popularity": attributes.get("userCount"),
                "aliases": aliases,
            }
        )
