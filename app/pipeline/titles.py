"""Title normalisation and similarity used when matching across sources."""

from __future__ import annotations

import re
from typing import Iterable

from rapidfuzz.distance import Levenshtein

MIN_VARIATION_LENGTH = 3
# Titles this much shorter than their counterpart never count as similar.
MIN_LENGTH_RATIO = 0.4

_SEASON_SUFFIXES = (
    re.compile(r"\s*:\s*season\s*\d+", re.IGNORECASE),
    re.compile(r"\s*season\s*\d+", re.IGNORECASE),
    re.compile(r"\s*\d+(st|nd|rd|th)\s*season", re.IGNORECASE),
    re.compile(r"\s*part\s*\d+", re.IGNORECASE),
    re.compile(r"\s*[ivx]+$", re.IGNORECASE),
    re.compile(r"\s*2nd$", re.IGNORECASE),
    re.compile(r"\s*the\s*final\s*season", re.IGNORECASE),
)


def normalize_title(title: str | None) -> str:
    """Lower-case, unify punctuation and drop everything but word characters."""

    if not title:
        return ""
    text = title.lower()
    text = re.sub(r"[‘’`]", "'", text)
    text = re.sub(r"[“”]", '"', text)
    text = re.sub(r"[：:]", ": ", text)
    text = text.replace("&", "and")
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[^\w\s'-]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def strip_season_suffix(normalized: str) -> str:
    cleaned = normalized
    for pattern in _SEASON_SUFFIXES:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def title_variations(title: str, synonyms: Iterable[str] = ()) -> list[str]:
    """Return normalised spellings of a title and its synonyms.

    Each title also yields a space-less form, and the primary title yields a
    form without ``Season 2`` / ``Part 2`` style suffixes.
    """

    variations: dict[str, None] = {}
    normalized = normalize_title(title)
    if normalized:
        variations[normalized] = None
        variations[normalized.replace(" ", "")] = None

    for synonym in synonyms:
        if not isinstance(synonym, str):
            continue
        candidate = normalize_title(synonym)
        if len(candidate) >= MIN_VARIATION_LENGTH:
            variations[candidate] = None
            variations[candidate.replace(" ", "")] = None

    cleaned = strip_season_suffix(normalized)
    if cleaned != normalized and len(cleaned) >= MIN_VARIATION_LENGTH:
        variations[cleaned] = None
    return list(variations)


def title_similarity(first: str, second: str) -> float:
    """Normalised Levenshtein similarity in ``[0, 1]``."""

    if not first or not second:
        return 0.0
    if first == second:
        return 1.0
    shorter, longer = sorted((first, second), key=len)
    if len(shorter) < len(longer) * MIN_LENGTH_RATIO:
        return 0.0
    return Levenshtein.normalized_similarity(first, second)
