"""IMDB dataset loading and multi-gate title matching."""

from __future__ import annotations

import csv
import gzip
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal

from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from ..models import AnimeRecord
from .titles import (
    MIN_VARIATION_LENGTH,
    normalize_title,
    title_similarity,
    title_variations,
)

logger = logging.getLogger(__name__)

IMDB_BASICS_URL = "https://datasets.imdbws.com/title.basics.tsv.gz"
IMDB_AKAS_URL = "https://datasets.imdbws.com/title.akas.tsv.gz"

Confidence = Literal["high", "medium", "low"]

# Subtype -> IMDB title types that describe the same kind of release.
TYPE_MAPPING: dict[str, tuple[str, ...]] = {
    "tv": ("tvSeries", "tvMiniSeries"),
    "movie": ("movie", "tvMovie"),
    "OVA": ("video", "tvSpecial"),
    "ONA": ("tvSeries", "video"),
    "special": ("tvSpecial", "video"),
    "music": ("musicVideo", "video"),
}
RELEVANT_TITLE_TYPES = frozenset(
    TYPE_MAPPING["tv"] + TYPE_MAPPING["movie"] + TYPE_MAPPING["OVA"]
)

GENRE_MAPPING: dict[str, tuple[str, ...]] = {
    "action": ("action",),
    "adventure": ("adventure",),
    "comedy": ("comedy",),
    "drama": ("drama",),
    "fantasy": ("fantasy",),
    "horror": ("horror",),
    "mystery": ("mystery",),
    "romance": ("romance",),
    "sci-fi": ("sci-fi", "science fiction"),
    "slice of life": ("drama",),
    "sports": ("sport",),
    "supernatural": ("fantasy", "horror"),
    "thriller": ("thriller",),
    "animation": ("animation",),
}

TITLE_POINTS = ((0.95, 35), (0.90, 30), (0.85, 25), (0.80, 20))
EXACT_TITLE_POINTS = 40
YEAR_POINTS = {0: 20, 1: 15, 2: 10, 3: 5}
TYPE_POINTS = 15
TYPE_FALLBACK_POINTS = 8
RUNTIME_CLOSE_POINTS = 10
RUNTIME_NEAR_POINTS = 5
GENRE_POINTS_EACH = 3
GENRE_MAX_POINTS = 15
UNKNOWN_YEAR_POINTS = 5
UNKNOWN_TYPE_POINTS = 5
UNKNOWN_RUNTIME_POINTS = 3
UNKNOWN_GENRE_POINTS = 5

HIGH_CONFIDENCE = 80
MEDIUM_CONFIDENCE = 60
MIN_TITLE_SIMILARITY = 0.80

_NULL = "\\N"


@dataclass(slots=True)
class ImdbTitle:
    id: str
    title: str
    title_type: str
    original_title: str | None = None
    year: int | None = None
    runtime: int | None = None
    genres: list[str] = field(default_factory=list)
    akas: list[str] = field(default_factory=list)

    def names(self) -> list[str]:
        return [name for name in (self.title, self.original_title, *self.akas) if name]


@dataclass(slots=True)
class MatchScore:
    title: int
    year: int
    type: int
    runtime: int
    genre: int
    similarity: float

    @property
    def total(self) -> int:
        return self.title + self.year + self.type + self.runtime + self.genre

    @property
    def confidence(self) -> Confidence:
        if self.total >= HIGH_CONFIDENCE:
            return "high"
        if self.total >= MEDIUM_CONFIDENCE:
            return "medium"
        return "low"

    def breakdown(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "year": self.year,
            "type": self.type,
            "runtime": self.runtime,
            "genre": self.genre,
            "similarity": round(self.similarity, 3),
        }


@dataclass(slots=True)
class MatchResult:
    imdb_id: str
    score: MatchScore
    top_candidates: list[dict[str, Any]] = field(default_factory=list)

    @property
    def confidence(self) -> Confidence:
        return self.score.confidence

    @property
    def accepted(self) -> bool:
        return self.confidence in ("high", "medium")


def score_title(variations: Iterable[str], candidate: ImdbTitle) -> tuple[int, float]:
    imdb_names = [normalize_title(candidate.title)]
    imdb_names.extend(
        name
        for name in (normalize_title(aka) for aka in candidate.akas)
        if len(name) >= MIN_VARIATION_LENGTH
    )
    best = 0.0
    for variation in variations:
        for name in imdb_names:
            if variation == name:
                return EXACT_TITLE_POINTS, 1.0
            best = max(best, title_similarity(variation, name))
    for threshold, points in TITLE_POINTS:
        if best >= threshold:
            return points, best
    return 0, best


def score_year(year: int | None, candidate_year: int | None) -> int:
    if not year or not candidate_year:
        return UNKNOWN_YEAR_POINTS
    return YEAR_POINTS.get(abs(year - candidate_year), 0)


def score_type(subtype: str | None, title_type: str | None) -> int:
    if not subtype or not title_type:
        return UNKNOWN_TYPE_POINTS
    if title_type in TYPE_MAPPING.get(subtype, ()):
        return TYPE_POINTS
    if title_type in ("tvSeries", "tvMiniSeries"):
        return TYPE_FALLBACK_POINTS
    return 0


def score_runtime(runtime: int | None, candidate_runtime: int | None) -> int:
    if not runtime or not candidate_runtime:
        return UNKNOWN_RUNTIME_POINTS
    diff = abs(runtime - candidate_runtime)
    if diff <= 5:
        return RUNTIME_CLOSE_POINTS
    if diff <= 10:
        return RUNTIME_NEAR_POINTS
    return 0


def score_genres(genres: Iterable[str], candidate_genres: Iterable[str]) -> int:
    wanted = [genre.lower().strip() for genre in genres]
    available = {genre.lower().strip() for genre in candidate_genres}
    if not wanted or not available:
        return UNKNOWN_GENRE_POINTS
    matches: set[str] = set()
    for genre in wanted:
        if genre in available or any(
            mapped in available for mapped in GENRE_MAPPING.get(genre, ())
        ):
            matches.add(genre)
    if "animation" in available:
        matches.add("animation")
    return min(len(matches) * GENRE_POINTS_EACH, GENRE_MAX_POINTS)


def score_candidate(
    record: AnimeRecord, candidate: ImdbTitle, synonyms: Iterable[str] = ()
) -> MatchScore:
    title_points, similarity = score_title(
        title_variations(record.name, synonyms), candidate
    )
    return MatchScore(
        title=title_points,
        year=score_year(record.year, candidate.year),
        type=score_type(record.subtype, candidate.title_type),
        runtime=score_runtime(record.runtime_minutes, candidate.runtime),
        genre=score_genres(record.genres, candidate.genres),
        similarity=similarity,
    )


def _read_tsv(path: Path) -> Iterable[list[str]]:
    csv.field_size_limit(sys.maxsize)
    opener = gzip.open if path.suffix == ".gz" else open
    with opener(path, "rt", encoding="utf-8", newline="") as handle:
        reader = csv.reader(handle, delimiter="\t", quoting=csv.QUOTE_NONE)
        next(reader, None)
        yield from reader


def _optional_int(value: str) -> int | None:
    if not value or value == _NULL:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def load_imdb_titles(
    basics_path: Path, akas_path: Path | None = None
) -> dict[str, ImdbTitle]:
    """Load non-adult Animation titles of the relevant types, plus their akas."""

    titles: dict[str, ImdbTitle] = {}
    for row in _read_tsv(basics_path):
        if len(row) < 9:
            continue
        tconst, title_type, primary, original, is_adult, start_year = row[:6]
        runtime, genres = row[7], row[8]
        if "animation" not in genres.lower():
            continue
        if title_type not in RELEVANT_TITLE_TYPES or is_adult == "1":
            continue
        titles[tconst] = ImdbTitle(
            id=tconst,
            title=primary,
            title_type=title_type,
            original_title=original if original not in ("", _NULL) else None,
            year=_optional_int(start_year),
            runtime=_optional_int(runtime),
            genres=[value.strip() for value in genres.split(",") if value.strip()],
        )
    logger.info("Loaded %s IMDB animation titles", len(titles))

    if akas_path is not None and akas_path.exists():
        added = 0
        for row in _read_tsv(akas_path):
            if len(row) < 3:
                continue
            entry = titles.get(row[0])
            aka = row[2]
            if entry is None or not aka or aka == _NULL or aka == entry.title:
                continue
            entry.akas.append(aka)
            added += 1
        logger.info("Added %s IMDB alternative titles", added)
    return titles


class ImdbMatcher:
    """Finds the IMDB title that best matches a catalog record."""

    def __init__(self, titles: dict[str, ImdbTitle]) -> None:
        self._titles = titles
        index: dict[str, list[ImdbTitle]] = {}
        for entry in titles.values():
            for name in entry.names():
                normalized = normalize_title(name)
                if len(normalized) < MIN_VARIATION_LENGTH:
                    continue
                bucket = index.setdefault(normalized, [])
                if not bucket or bucket[-1] is not entry:
                    bucket.append(entry)
        self._index = index
        self._keys = list(index)

    @classmethod
    def from_files(cls, basics_path: Path, akas_path: Path | None = None) -> "ImdbMatcher":
        return cls(load_imdb_titles(basics_path, akas_path))

    def __len__(self) -> int:
        return len(self._titles)

    def candidates(self, variations: Iterable[str]) -> dict[str, ImdbTitle]:
        found: dict[str, ImdbTitle] = {}
        for variation in variations:
            for entry in self._index.get(variation, ()):
                found[entry.id] = entry
            for key, _, _ in process.extract(
                variation,
                self._keys,
                scorer=Levenshtein.normalized_similarity,
                score_cutoff=MIN_TITLE_SIMILARITY,
                limit=None,
            ):
                for entry in self._index[key]:
                    found[entry.id] = entry
        return found

    def match(
        self, record: AnimeRecord, synonyms: Iterable[str] = ()
    ) -> MatchResult | None:
        synonyms = list(synonyms)
        candidates = self.candidates(title_variations(record.name, synonyms))
        if not candidates:
            return None

        scored = sorted(
            (
                (score_candidate(record, candidate, synonyms), candidate)
                for candidate in candidates.values()
            ),
            key=lambda item: item[0].total,
            reverse=True,
        )
        best_score, best = scored[0]
        top = [
            {
                "imdbId": candidate.id,
                "title": candidate.title,
                "year": candidate.year,
                "score": score.total,
                "confidence": score.confidence,
            }
            for score, candidate in scored[:3]
        ]
        return MatchResult(imdb_id=best.id, score=best_score, top_candidates=top)
