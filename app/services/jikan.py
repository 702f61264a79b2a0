"""Jikan (MyAnimeList) client used to fetch synopses for the meta route."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict

import httpx

logger = logging.getLogger(__name__)


class SynopsisCache:
    """Bounded in-memory cache with a time-to-live; the oldest entry is evicted."""

    def __init__(self, ttl_seconds: float, max_entries: int) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: OrderedDict[int, tuple[str, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: int) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if time.monotonic() - stored_at > self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: int, value: str) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (value, time.monotonic())
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)


class JikanClient:
    """Thin wrapper around ``GET /anime/{mal_id}`` with a synopsis cache."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        cache_ttl: float = 86_400,
        cache_size: int = 1_000,
    ) -> None:
        self._client = http_client
        self._cache = SynopsisCache(cache_ttl, cache_size)
        self._semaphore = asyncio.Semaphore(3)

    @property
    def cache(self) -> SynopsisCache:
        return self._cache

    async def fetch_synopsis(self, mal_id: int) -> str | None:
        """Return the MyAnimeList synopsis, or ``None`` when unavailable."""

        cached = self._cache.get(mal_id)
        if cached is not None:
            return cached

        try:
            async with self._semaphore:
                response = await self._client.get(f"/anime/{mal_id}")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Jikan synopsis lookup failed for MAL %s: %s", mal_id, exc)
            return None
        except ValueError as exc:
            logger.warning("Jikan returned invalid JSON for MAL %s: %s", mal_id, exc)
            return None

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None
        synopsis = data.get("synopsis")
        if not isinstance(synopsis, str) or not synopsis.strip():
            return None
        synopsis = synopsis.strip()
        self._cache.set(mal_id, synopsis)
        return synopsis
