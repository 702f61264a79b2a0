"""Pytest configuration and test helpers."""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path
from typing import Any

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.models import AnimeRecord  # noqa: E402

# Mid fall 2025: winter 2026 is the next season.
TODAY = date(2025, 10, 15)

SAMPLE_CATALOG: list[dict[str, Any]] = [
    {
        "id": "tt1000001",
        "imdb_id": "tt1000001",
        "mal_id": 101,
        "name": "Starlight Voyage",
        "description": "A crew chases a falling star across the sky.",
        "subtype": "movie",
        "status": "FINISHED",
        "year": 2024,
        "season": "summer",
        "rating": 9.0,
        "genres": ["Action", "Adventure"],
        "studios": ["Studio Sun"],
        "runtime": "1 hr 45 min",
        "popularity": 500,
        "poster": "https://img.example.com/starlight.jpg",
    },
    {
        "mal_id": 202,
        "kitsu_id": 303,
        "name": "Harbor Cafe",
        "description": "Regulars of a seaside cafe share small stories.",
        "subtype": "TV",
        "status": "ongoing",
        "year": 2025,
        "season": "Fall",
        "broadcastDay": "Fridays",
        "rating": 8.0,
        "genres": ["Comedy", "Slice of Life"],
        "studios": ["Studio Sun"],
        "episodeCount": 12,
        "runtime": 24,
        "popularity": 900,
        "aliases": ["Minato Kissa"],
        "poster": "https://media.kitsu.io/anime/poster_images/303/large.jpg",
    },
    {
        "id": "tt3000003",
        "imdbId": "tt3000003",
        "name": "Echoes Compilation",
        "subtype": "special",
        "status": "FINISHED",
        "year": 2023,
        "season": "spring",
        "runtime": 120,
        "rating": 7.0,
        "genres": ["Drama", "Action"],
        "popularity": 100,
    },
]


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def sample_records() -> list[AnimeRecord]:
    return [AnimeRecord.model_validate(entry) for entry in SAMPLE_CATALOG]


def write_catalog_file(path: Path, entries: list[dict[str, Any]] | None = None) -> Path:
    payload = {
        "buildDate": "2025-10-01T00:00:00Z",
        "version": "5.0",
        "source": "test",
        "stats": {"totalAnime": len(entries or SAMPLE_CATALOG)},
        "catalog": entries if entries is not None else SAMPLE_CATALOG,
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    return write_catalog_file(tmp_path / "catalog.json")
