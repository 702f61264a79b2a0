"""Post-build enrichment from Cinemeta and Jikan."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from ..models import AnimeRecord
from .http import RateLimitedClient, UpstreamError
from .titles import normalize_title

logger = logging.getLogger(__name__)

CINEMETA_BATCH_SIZE = 5
MAX_CAST = 10
JIKAN_SEARCH_LIMIT = 5
METAHUB_LOGO_URL = "https://images.metahub.space/logo/medium/{imdb_id}/img"

_SEARCH_PUNCTUATION_RE = re.compile(r"[:\-–—]")


@dataclass
class CinemetaStats:
    enriched: int = 0
    logos: int = 0
    backgrounds: int = 0
    cast: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "enriched": self.enriched,
            "logos": self.logos,
            "backgrounds": self.backgrounds,
            "cast": self.cast,
        }


class CinemetaEnricher:
    """Fills logo, background, cast and genres from Cinemeta by IMDB id."""

    def __init__(
        self,
        client: RateLimitedClient,
        base_url: str,
        *,
        batch_size: int = CINEMETA_BATCH_SIZE,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._batch_size = batch_size
        self.stats = CinemetaStats()

    async def fetch_meta(self, record: AnimeRecord) -> dict[str, Any] | None:
        url = f"{self._base_url}/meta/{record.content_type}/{record.imdb_id}.json"
        payload = await self._client.get_json(url)
        if not isinstance(payload, dict) or not isinstance(payload.get("meta"), dict):
            return None
        return payload["meta"]

    async def enrich(self, record: AnimeRecord) -> AnimeRecord:
        if not record.imdb_id:
            return record
        try:
            meta = await self.fetch_meta(record)
        except UpstreamError as exc:
            logger.warning("Cinemeta lookup for %s failed: %s", record.imdb_id, exc)
            return record
        if meta is None:
            return record

        self.stats.enriched += 1
        update: dict[str, Any] = {}
        if meta.get("logo") and not record.logo:
            update["logo"] = meta["logo"]
            self.stats.logos += 1
        if meta.get("background") and not record.background:
            update["background"] = meta["background"]
            self.stats.backgrounds += 1
        cast = [name for name in meta.get("cast") or [] if isinstance(name, str)]
        if cast and not record.cast:
            update["cast"] = cast[:MAX_CAST]
            self.stats.cast += 1
        extra_genres = [
            genre
            for genre in meta.get("genres") or []
            if isinstance(genre, str) and genre not in record.genres
        ]
        if extra_genres:
            update["genres"] = [*record.genres, *extra_genres]
        return record.model_copy(update=update) if update else record

    async def enrich_all(self, records: Sequence[AnimeRecord]) -> list[AnimeRecord]:
        enriched: list[AnimeRecord] = []
        total = sum(1 for record in records if record.imdb_id)
        logger.info("Enriching %s records from Cinemeta", total)
        for start in range(0, len(records), self._batch_size):
            batch = records[start : start + self._batch_size]
            enriched.extend(await asyncio.gather(*(self.enrich(record) for record in batch)))
        logger.info("Cinemeta enrichment: %s", self.stats.as_dict())
        return enriched


def with_default_logo(record: AnimeRecord) -> AnimeRecord:
    if record.logo or not record.imdb_id:
        return record
    return record.model_copy(
        update={"logo": METAHUB_LOGO_URL.format(imdb_id=record.imdb_id)}
    )


def clean_search_title(title: str) -> str:
    return " ".join(_SEARCH_PUNCTUATION_RE.sub(" ", title).split())


def best_match(title: str, results: Iterable[dict[str, Any]]) -> dict[str, Any] | None:
    """Choose the Jikan search result that corresponds to ``title``.

    Preference order: an exact normalised match on any title or synonym, a
    containment match either way on the main or English title, then the
    first result that is currently airing.
    """

    results = [result for result in results if isinstance(result, dict)]
    wanted = normalize_title(title)
    if not wanted:
        return None

    for result in results:
        names = [
            result.get("title"),
            result.get("title_english"),
            result.get("title_japanese"),
            *(result.get("title_synonyms") or []),
        ]
        if any(normalize_title(name) == wanted for name in names if name):
            return result

    for result in results:
        for name in (result.get("title"), result.get("title_english")):
            candidate = normalize_title(name)
            if candidate and (candidate in wanted or wanted in candidate):
                return result

    for result in results:
        if result.get("status") == "Currently Airing":
            return result
    return None


@dataclass
class BroadcastStats:
    candidates: int = 0
    updated: int = 0
    mal_ids_found: int = 0
    not_found: int = 0


class JikanBroadcastEnricher:
    """Adds ``broadcastDay`` to airing series using MyAnimeList data."""

    def __init__(self, client: RateLimitedClient, api_url: str) -> None:
        self._client = client
        self._api_url = api_url.rstrip("/")
        self.stats = BroadcastStats()

    async def fetch_anime(self, mal_id: int) -> dict[str, Any] | None:
        payload = await self._client.get_json(f"{self._api_url}/anime/{mal_id}/full")
        data = payload.get("data") if isinstance(payload, dict) else None
        return data if isinstance(data, dict) else None

    async def search(self, title: str) -> list[dict[str, Any]]:
        payload = await self._client.get_json(
            f"{self._api_url}/anime",
            params={"q": clean_search_title(title), "limit": JIKAN_SEARCH_LIMIT, "sfw": "true"},
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        return data if isinstance(data, list) else []

    @staticmethod
    def needs_broadcast(record: AnimeRecord) -> bool:
        return record.status == "ONGOING" and not record.broadcast_day

    async def enrich(self, record: AnimeRecord) -> AnimeRecord:
        try:
            if record.mal_id is not None:
                anime = await self.fetch_anime(record.mal_id)
            else:
                anime = best_match(record.name, await self.search(record.name))
        except UpstreamError as exc:
            logger.warning("Jikan lookup for %s failed: %s", record.id, exc)
            self.stats.not_found += 1
            return record

        day = ((anime or {}).get("broadcast") or {}).get("day")
        if not anime or not day:
            self.stats.not_found += 1
            return record

        update: dict[str, Any] = {"broadcast_day": day}
        if record.mal_id is None and anime.get("mal_id"):
            update["mal_id"] = anime["mal_id"]
            self.stats.mal_ids_found += 1
        validated = AnimeRecord.model_validate(
            {**record.model_dump(), **update}
        )
        if validated.broadcast_day:
            self.stats.updated += 1
        return validated

    async def enrich_all(self, records: Sequence[AnimeRecord]) -> list[AnimeRecord]:
        result: list[AnimeRecord] = []
        for record in records:
            if self.needs_broadcast(record):
                self.stats.candidates += 1
                record = await self.enrich(record)
            result.append(record)
        logger.info(
            "Broadcast days: %s of %s airing titles updated (%s new MAL ids)",
            self.stats.updated,
            self.stats.candidates,
            self.stats.mal_ids_found,
        )
        return result
