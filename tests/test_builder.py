from __future__ import annotations

import gzip
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator

import httpx
import pytest

from app.config import Settings
from app.models import AnimeRecord
from app.pipeline.builder import (
    CatalogBuilder,
    regenerate_facets,
    run_broadcast_enrichment,
    run_build,
)
from app.pipeline.curation import Curation
from app.pipeline.enrich import METAHUB_LOGO_URL
from app.pipeline.http import RateLimitedClient
from app.pipeline.imdb import ImdbMatcher, ImdbTitle
from app.pipeline.mappings import FribbMappings
from app.pipeline.sources import SourceAdapter
from app.pipeline.writer import build_envelope, write_catalog
from conftest import TODAY, write_catalog_file


class FakeSource(SourceAdapter):
    name = "fake"

    def __init__(self, entries: list[dict[str, Any]]) -> None:
        super().__init__(client=None)  # type: ignore[arg-type]
        self._entries = entries

    async def fetch(self, limit: int | None = None) -> AsyncIterator[dict[str, Any]]:
        for entry in self._entries[:limit]:
            yield entry

    async def normalize(self, raw: dict[str, Any]) -> AnimeRecord | None:
        return AnimeRecord.model_validate(raw)


SOURCE_ENTRIES = [
    {"imdbId": "tt1000001", "name": "Sky Pirates", "subtype": "tv", "year": 2020, "popularity": 100},
    {"malId": 2, "name": "Harbor Cafe", "subtype": "tv", "popularity": 300, "episodes": 12},
    {
        "malId": 4,
        "name": "Night Train",
        "subtype": "movie",
        "year": 2019,
        "runtime": 100,
        "genres": ["Drama"],
        "popularity": 200,
    },
    {"malId": 5, "name": "Explicit Thing", "genres": ["Hentai"], "popularity": 1000},
    {"malId": 6, "name": "Lonely Star", "popularity": 10},
    {"malId": 7, "name": "Harbor Cafe Recap", "subtype": "tv", "popularity": 5, "episodes": 1},
]


def make_builder() -> CatalogBuilder:
    return CatalogBuilder(
        FakeSource(SOURCE_ENTRIES),
        mappings=FribbMappings.from_entries(
            [
                {"mal_id": 2, "imdb_id": "tt2000002"},
                {"mal_id": 7, "imdb_id": "tt2000002"},
            ]
        ),
        matcher=ImdbMatcher(
            {
                "tt4000004": ImdbTitle(
                    "tt4000004", "Night Train", "movie", year=2019, runtime=101,
                    genres=["Animation", "Drama"],
                )
            }
        ),
        curation=Curation(hidden=["mal-6"]),
    )


@pytest.mark.anyio("asyncio")
async def test_catalog_builder_runs_every_stage() -> None:
    builder = make_builder()

    records = await builder.build()

    assert [record.id for record in records] == ["tt2000002", "tt4000004", "tt1000001"]
    cafe = records[0]
    assert cafe.name == "Harbor Cafe"
    assert cafe.episode_count == 13
    assert cafe.merged_seasons == 2
    assert all(record.logo == METAHUB_LOGO_URL.format(imdb_id=record.id) for record in records)
    assert builder.report.summary() == {
        "fromSource": 1,
        "fromFribb": 2,
        "fromImdbHigh": 1,
        "fromImdbMedium": 0,
        "rejectedLow": 0,
        "noMatch": 2,
    }
    assert builder.source_label == "fake+fribb+imdb"
    report = builder.report.to_dict()
    assert report["high"][0]["imdbId"] == "tt4000004"
    assert report["high"][0]["breakdown"]["title"] == 40


@pytest.mark.anyio("asyncio")
async def test_catalog_builder_respects_limit() -> None:
    records = await make_builder().build(limit=2)

    assert [record.id for record in records] == ["tt2000002", "tt1000001"]


def test_write_catalog_produces_json_and_gzip(tmp_path: Path, sample_records) -> None:
    envelope = build_envelope(
        sample_records,
        source="kitsu+fribb",
        stats={"fromFribb": 1},
        build_date=datetime(2025, 10, 1, tzinfo=timezone.utc),
    )

    json_path, gz_path = write_catalog(tmp_path / "out", envelope)

    assert envelope["buildDate"] == "2025-10-01T00:00:00Z"
    assert envelope["version"] == "5.0"
    assert envelope["stats"] == {"totalAnime": 3, "fromFribb": 1}
    assert json.loads(json_path.read_text(encoding="utf-8")) == envelope
    with gzip.open(gz_path, "rt", encoding="utf-8") as handle:
        assert json.load(handle) == envelope
    assert not list((tmp_path / "out").glob("*.tmp"))


OFFLINE_PAYLOAD = {
    "data": [
        {
            "sources": ["https://myanimelist.net/anime/202"],
            "title": "Harbor Cafe",
            "type": "TV",
            "status": "ONGOING",
            "animeSeason": {"season": "FALL", "year": 2025},
            "tags": ["comedy"],
        }
    ]
}


def build_settings(tmp_path: Path, **overrides: Any) -> Settings:
    return Settings(
        _env_file=None,
        DATA_DIR=str(tmp_path),
        OFFLINE_DB_URL="https://offline.example/db.json",
        FRIBB_URL="https://lists.example/fribb.json",
        JIKAN_API_URL="https://jikan.example/v4",
        **overrides,
    )


def offline_handler(payload: dict[str, Any]):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "offline.example":
            return httpx.Response(200, json=payload)
        if request.url.host == "lists.example":
            return httpx.Response(200, json=[{"mal_id": 202, "imdb_id": "tt2000002"}])
        return httpx.Response(404)

    return handler


@pytest.mark.anyio("asyncio")
async def test_run_build_writes_catalog_files(tmp_path: Path) -> None:
    settings = build_settings(tmp_path)

    async with httpx.AsyncClient(transport=httpx.MockTransport(offline_handler(OFFLINE_PAYLOAD))) as http_client:
        result = await run_build(
            settings,
            "offline",
            skip_cinemeta=True,
            skip_imdb=True,
            client=RateLimitedClient(http_client, min_interval=0),
            today=TODAY,
        )

    assert [record.id for record in result.records] == ["tt2000002"]
    assert sorted(path.name for path in result.paths) == [
        "catalog.json",
        "catalog.json.gz",
        "filter-options.json",
        "imdb-match-report.json",
    ]
    written = json.loads((tmp_path / "catalog.json").read_text(encoding="utf-8"))
    assert written["source"] == "offline+fribb"
    assert written["stats"]["totalAnime"] == 1
    assert written["stats"]["fromFribb"] == 1
    assert written["catalog"][0]["genres"] == ["Comedy"]
    assert result.filter_options.stats["totalSeries"] == 1


@pytest.mark.anyio("asyncio")
async def test_run_build_without_records_fails(tmp_path: Path) -> None:
    settings = build_settings(tmp_path)

    async with httpx.AsyncClient(transport=httpx.MockTransport(offline_handler({"data": []}))) as http_client:
        with pytest.raises(RuntimeError, match="produced no records"):
            await run_build(
                settings,
                "offline",
                skip_cinemeta=True,
                skip_imdb=True,
                client=RateLimitedClient(http_client, min_interval=0),
            )

    assert not (tmp_path / "catalog.json").exists()


def test_regenerate_facets(catalog_file: Path, tmp_path: Path) -> None:
    options = regenerate_facets(catalog_file, tmp_path / "facets", TODAY)

    assert options.stats["totalSeries"] == 1
    assert options.stats["totalMovies"] == 2
    written = json.loads((tmp_path / "facets" / "filter-options.json").read_text(encoding="utf-8"))
    assert written["stats"]["totalMovies"] == 2


AIRING_ENTRY = {
    "mal_id": 202,
    "name": "Harbor Cafe",
    "subtype": "TV",
    "status": "ONGOING",
    "year": 2025,
    "season": "fall",
}


def jikan_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/v4/anime/202/full":
        return httpx.Response(200, json={"data": {"mal_id": 202, "broadcast": {"day": "Fridays"}}})
    return httpx.Response(404)


@pytest.mark.anyio("asyncio")
async def test_broadcast_enrichment_rewrites_catalog(tmp_path: Path) -> None:
    catalog_path = write_catalog_file(tmp_path / "catalog.json", [AIRING_ENTRY])
    settings = build_settings(tmp_path)

    async with httpx.AsyncClient(transport=httpx.MockTransport(jikan_handler)) as http_client:
        client = RateLimitedClient(http_client, min_interval=0)
        dry = await run_broadcast_enrichment(settings, dry_run=True, client=client, today=TODAY)
        unchanged = json.loads(catalog_path.read_text(encoding="utf-8"))
        enricher = await run_broadcast_enrichment(settings, client=client, today=TODAY)

    assert dry.stats.updated == 1
    assert "broadcastDay" not in unchanged["catalog"][0]
    assert enricher.stats.updated == 1
    written = json.loads(catalog_path.read_text(encoding="utf-8"))
    assert written["catalog"][0]["broadcastDay"] == "friday"
    assert written["source"] == "test"
    assert written["version"] == "5.0"
    assert (tmp_path / "catalog.json.gz").exists()
    facets = json.loads((tmp_path / "filter-options.json").read_text(encoding="utf-8"))
    assert facets["stats"]["totalSeries"] == 1
