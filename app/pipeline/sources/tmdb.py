"""TMDB discover source for Japanese animated TV shows."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, AsyncIterator

from ...models import AnimeRecord
from ...seasons import season_from_date
from ..http import RateLimitedClient, UpstreamError
from .base import SourceAdapter

logger = logging.getLogger(__name__)

TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/"
ANIMATION_GENRE_ID = 16
MAX_DISCOVER_PAGES = 500

TMDB_GENRES: dict[int, str] = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Sci-Fi",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
    10759: "Action & Adventure",
    10762: "Kids",
    10763: "News",
    10764: "Reality",
    10765: "Sci-Fi & Fantasy",
    10766: "Soap",
    10767: "Talk",
    10768: "War & Politics",
}

TMDB_STATUSES = {
    "Returning Series": "ONGOING",
    "Ended": "FINISHED",
    "In Production": "UPCOMING",
}


class TmdbSource(SourceAdapter):
    """Discover results sorted by popularity; only shows with an IMDB id survive."""

    name = "tmdb"

    def __init__(
        self,
        client: RateLimitedClient,
        api_url: str,
        api_key: str | None,
        *,
        max_pages: int = MAX_DISCOVER_PAGES,
        today: date | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("TMDB_API_KEY is required for the TMDB source")
        super().__init__(client)
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._max_pages = max_pages
        self._today = today

    async def _request(self, path: str, **params: Any) -> Any:
        return await self._client.get_json(
            f"{self._api_url}{path}", params={"api_key": self._api_key, **params}
        )

    async def fetch(self, limit: int | None = None) -> AsyncIterator[dict[str, Any]]:
        page = 1
        total_pages = 1
        yielded = 0
        while page <= total_pages:
            try:
                payload = await self._request(
                    "/discover/tv",
                    with_genres=ANIMATION_GENRE_ID,
                    with_origin_country="JP",
                    sort_by="popularity.desc",
                    page=page,
                )
            except UpstreamError as exc:
                logger.warning("TMDB discover page %s failed: %s", page, exc)
                return
            if not isinstance(payload, dict):
                return
            total_pages = min(int(payload.get("total_pages") or 0), self._max_pages)
            for show in payload.get("results") or []:
                if limit is not None and yielded >= limit:
                    return
                yielded += 1
                yield show
            page += 1

    async def normalize(self, raw: dict[str, Any]) -> AnimeRecord | None:
        tmdb_id = raw.get("id")
        if tmdb_id is None:
            return None
        details = await self._request(f"/tv/{tmdb_id}") or {}
        external_ids = await self._request(f"/tv/{tmdb_id}/external_ids") or {}
        imdb_id = external_ids.get("imdb_id")
        # Streams resolve by IMDB id, so shows without one are useless.
        if not imdb_id:
            return None

        genres = [genre.get("name") for genre in details.get("genres") or []]
        if not genres:
            genres = [TMDB_GENRES.get(genre_id) for genre_id in raw.get("genre_ids") or []]

        first_air_date = raw.get("first_air_date") or details.get("first_air_date")
        rating = raw.get("vote_average") or details.get("vote_average")
        today = self._today or date.today()
        if not first_air_date or first_air_date > today.isoformat():
            rating = None

        poster_path = raw.get("poster_path") or details.get("poster_path")
        backdrop_path = raw.get("backdrop_path") or details.get("backdrop_path")

        return AnimeRecord.model_validate(
            {
                "id": imdb_id,
                "imdb_id": imdb_id,
                "tmdb_id": tmdb_id,
                "name": raw.get("name") or details.get("name"),
                "description": raw.get("overview") or details.get("overview"),
                "subtype": "tv",
                "status": TMDB_STATUSES.get(details.get("status") or ""),
                "year": first_air_date[:4] if first_air_date else None,
                "season": season_from_date(first_air_date),
                "rating": rating,
                "poster": f"{TMDB_IMAGE_BASE}w500{poster_path}" if poster_path else None,
                "background": (
                    f"{TMDB_IMAGE_BASE}original{backdrop_path}" if backdrop_path else None
                ),
                "genres": [genre for genre in genres if genre],
                "episodes": details.get("number_of_episodes"),
                "studios": [
                    network.get("name") for network in details.get("networks") or []
                ],
                "popularity": round(raw["popularity"]) if raw.get("popularity") else None,
                "aliases": [raw.get("original_name")],
            }
        )
