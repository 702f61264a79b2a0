"""manami-project anime-offline-database source."""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, AsyncIterator, Iterable

from ...models import AnimeRecord
from ...seasons import is_future_season
from ..http import RateLimitedClient, UpstreamError
from .base import SourceAdapter

logger = logging.getLogger(__name__)

TAG_TO_GENRE: dict[str, str] = {
    "action": "Action",
    "adventure": "Adventure",
    "comedy": "Comedy",
    "drama": "Drama",
    "fantasy": "Fantasy",
    "horror": "Horror",
    "mystery": "Mystery",
    "psychological": "Psychological",
    "romance": "Romance",
    "sci-fi": "Sci-Fi",
    "science fiction": "Sci-Fi",
    "slice of life": "Slice of Life",
    "sports": "Sports",
    "supernatural": "Supernatural",
    "thriller": "Thriller",
    "suspense": "Thriller",
    "mecha": "Mecha",
    "music": "Music",
    "school": "School",
    "school life": "School",
    "high school": "School",
    "seinen": "Seinen",
    "shoujo": "Shoujo",
    "shounen": "Shounen",
    "shonen": "Shounen",
    "josei": "Josei",
    "isekai": "Isekai",
    "martial arts": "Martial Arts",
    "military": "Military",
    "parody": "Parody",
    "historical": "Historical",
    "demons": "Demons",
    "magic": "Magic",
    "vampire": "Vampire",
    "vampires": "Vampire",
    "space": "Space",
    "game": "Game",
    "video game": "Game",
    "harem": "Harem",
    "ecchi": "Ecchi",
    "kids": "Kids",
    "super power": "Super Power",
    "superpowers": "Super Power",
    "samurai": "Samurai",
    "cars": "Cars",
    "racing": "Cars",
    "police": "Police",
    "award winning": "Award Winning",
    "gourmet": "Gourmet",
    "cooking": "Gourmet",
    "workplace": "Workplace",
    "mythology": "Mythology",
    "performing arts": "Performing Arts",
    "visual arts": "Visual Arts",
    "reincarnation": "Reincarnation",
    "time travel": "Time Travel",
    "survival": "Survival",
    "idols": "Idols",
    "idol": "Idols",
    "mahou shoujo": "Mahou Shoujo",
    "magical girl": "Mahou Shoujo",
    "reverse harem": "Reverse Harem",
    "boys love": "Boys Love",
    "shounen ai": "Boys Love",
    "yaoi": "Boys Love",
    "girls love": "Girls Love",
    "shoujo ai": "Girls Love",
    "yuri": "Girls Love",
    "cgdct": "CGDCT",
    "cute girls doing cute things": "CGDCT",
    "iyashikei": "Iyashikei",
    "healing": "Iyashikei",
}

_SOURCE_ID_PATTERNS = {
    "mal_id": re.compile(r"myanimelist\.net/anime/(\d+)"),
    "kitsu_id": re.compile(r"kitsu\.(?:app|io)/anime/(\d+)"),
    "anilist_id": re.compile(r"anilist\.co/anime/(\d+)"),
}

_NON_LATIN_RE = re.compile(
    r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FFF\uAC00-\uD7AF"
    r"\u0400-\u04FF\u0600-\u06FF\u0E00-\u0E7F]"
)
_EXTENDED_LATIN_RE = re.compile(r"[çşğıüöäßàâèéêëîïôùûñ]", re.IGNORECASE)
_ROMANIZED_RE = re.compile(
    r"\b(bian|xia|qing|ying|xiong|jie|zhi|ren|tian|shi|jiu|xin|yao|yuan|zhan|"
    r"feng|long|jing|hua|mei|yan|ling|xue|yue|zhu|hao|wei|guang|jun|qi|kai|"
    r"xiao|dao|dian|zhe|huang|lian|nian|wang|wu|san|shan|dong|qiang|zhong|bei|"
    r"nan|shao|shen|pian|wo|de|ta|ai|bao|cheng|dou|gao|gen|gong|gu|han|hu|ji|"
    r"jia|jin|kong|li|liu|ma|min|mo|nv|pan|peng|pu|ri|rong|su|tang|tong|wai|"
    r"wan|xing|xu|yong|zhang|zhao|zheng|zhou|zhuan|zi)\b",
    re.IGNORECASE,
)
_ENGLISH_WORDS_RE = re.compile(
    r"\b(the|a|an|of|to|in|on|at|by|for|with|and|or|my|your|our|his|her|their|"
    r"this|that|is|are|was|were|be|have|has|had|do|does|did|will|would|can|"
    r"could|may|might|must|shall|should|hero|heroine|king|queen|prince|"
    r"princess|knight|magic|world|story|tale|adventure|journey|love|war|battle|"
    r"legend|dragon|sword|shield|life|death|light|dark|shadow|spirit|soul|"
    r"dream|heaven|hell|devil|angel|god|demon|monster|beast|girl|boy|man|woman|"
    r"child|kid|school|student|teacher|master|friend|enemy|secret|mystery|time|"
    r"space|future|past|season|part|chapter|episode|movie|film|special|"
    r"complete|final|one|piece|attack|titan|note|naruto|bleach|hunter|"
    r"fullmetal|alchemist|code|geass|steins|gate|cowboy|bebop|neon|genesis|"
    r"evangelion|art|online|fairy|tail|mob|psycho)\b",
    re.IGNORECASE,
)


def map_tags_to_genres(tags: Iterable[str]) -> list[str]:
    genres = {TAG_TO_GENRE[tag.lower()] for tag in tags if tag.lower() in TAG_TO_GENRE}
    return sorted(genres)


def english_title_score(title: str | None) -> int:
    """Score how likely a title is the English one; 0 for non-Latin scripts."""

    if not title or _NON_LATIN_RE.search(title):
        return 0
    score = 1
    if _EXTENDED_LATIN_RE.search(title):
        score -= 3
    if title[0].isascii() and title[0].isupper():
        score += 1
    if _ROMANIZED_RE.search(title):
        score -= 2
    if _ENGLISH_WORDS_RE.search(title):
        score += 3
    words = title.split()
    if len(words) > 1 and all(word[0].isupper() or len(word) <= 2 for word in words):
        score += 1
    if len(title) <= 20:
        score += 1
    if len(title) <= 15:
        score += 1
    return score


def best_english_title(title: str, synonyms: Iterable[str]) -> str:
    """Pick the synonym that scores strictly higher than ``title``, if any."""

    best, best_score = title, english_title_score(title)
    for synonym in synonyms:
        score = english_title_score(synonym)
        if score > best_score:
            best, best_score = synonym, score
    return best


def parse_source_ids(sources: Iterable[str]) -> dict[str, int]:
    ids: dict[str, int] = {}
    for source in sources:
        for field_name, pattern in _SOURCE_ID_PATTERNS.items():
            match = pattern.search(source)
            if match and field_name not in ids:
                ids[field_name] = int(match.group(1))
    return ids


class OfflineDatabaseSource(SourceAdapter):
    """Every MAL-linked title in the anime-offline-database dump."""

    name = "offline"

    def __init__(
        self,
        client: RateLimitedClient,
        database_url: str,
        *,
        today: date | None = None,
    ) -> None:
        super().__init__(client)
        self._database_url = database_url
        self._today = today

    async def fetch(self, limit: int | None = None) -> AsyncIterator[dict[str, Any]]:
        try:
            payload = await self._client.get_json(self._database_url)
        except UpstreamError as exc:
            logger.warning("Offline database unavailable: %s", exc)
            return
        entries = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            logger.warning("Offline database has no data array")
            return
        logger.info("Offline database holds %s entries", len(entries))
        for index, entry in enumerate(entries):
            if limit is not None and index >= limit:
                return
            if isinstance(entry, dict):
                yield entry

    async def normalize(self, raw: dict[str, Any]) -> AnimeRecord | None:
        ids = parse_source_ids(raw.get("sources") or [])
        if "mal_id" not in ids:
            return None

        title = raw.get("title") or ""
        synonyms = [value for value in raw.get("synonyms") or [] if isinstance(value, str)]
        display_title = best_english_title(title, synonyms)
        aliases = [title, *synonyms] if display_title != title else synonyms
        aliases = [alias for alias in aliases if alias != display_title]

        season_info = raw.get("animeSeason") or {}
        year = season_info.get("year")
        season = (season_info.get("season") or "").lower()
        if season == "undefined":
            season = ""

        score = raw.get("score") or {}
        rating = score.get("median") or score.get("arithmeticMean")
        if year and season and is_future_season(int(year), season, self._today):
            rating = None

        duration = raw.get("duration") or {}
        runtime = round(duration["value"] / 60) if duration.get("value") else None
        tags = [tag for tag in raw.get("tags") or [] if isinstance(tag, str)]

        return AnimeRecord.model_validate(
            {
                **ids,
                "name": display_title,
                "year": year,
                "season": season or None,
                "status": raw.get("status"),
                "subtype": raw.get("type"),
                "episodes": raw.get("episodes"),
                "runtime": runtime,
                "rating": rating,
                "poster": raw.get("picture") or raw.get("thumbnail"),
                "background": raw.get("picture"),
                "studios": raw.get("studios") or [],
                "genres": map_tags_to_genres(tags),
                "tags": tags,
                "aliases": aliases,
            }
        )
