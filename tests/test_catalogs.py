"""Tests for the browse catalog handlers and extra-segment parsing."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from app.catalogs import (
    AIRING,
    MOVIES,
    PAGE_SIZE,
    SERIES_SEARCH,
    TOP_RATED,
    CatalogExtra,
    CatalogService,
    handle_airing,
    handle_movies,
    handle_season_releases,
    handle_top_rated,
    is_long_running,
    paginate,
    parse_extra,
)
from app.models import AnimeRecord
from app.store import CatalogStore
from conftest import TODAY


def make_record(**fields) -> AnimeRecord:
    fields.setdefault("name", f"Show {fields.get('mal_id', 0)}")
    return AnimeRecord.model_validate(fields)


def test_parse_extra_decodes_each_value() -> None:
    assert parse_extra("genre=Slice%20of%20Life&skip=100") == {
        "genre": "Slice of Life",
        "skip": "100",
    }
    assert parse_extra("search=rock+%26+roll") == {"search": "rock & roll"}
    assert parse_extra(None) == {}


def test_catalog_extra_coerces_invalid_skip() -> None:
    assert CatalogExtra.from_path_segment("skip=abc").skip == 0
    assert CatalogExtra.from_path_segment("skip=-5").skip == 0
    assert CatalogExtra.from_path_segment("genre=&skip=20") == CatalogExtra(skip=20)


def test_paginate_returns_fixed_pages() -> None:
    records = [make_record(mal_id=index) for index in range(1, 251)]

    assert len(paginate(records, 0)) == PAGE_SIZE
    assert paginate(records, 200)[0].mal_id == 201
    assert paginate(records, 500) == []


def test_pages_concatenate_to_the_full_sorted_list() -> None:
    records = [
        make_record(id=f"mal-{index}", mal_id=index, subtype="tv", rating=(index % 97) / 10 + 0.1)
        for index in range(1, 251)
    ]
    ordered = handle_top_rated(records)

    pages: list[AnimeRecord] = []
    for skip in range(0, len(ordered) + PAGE_SIZE, PAGE_SIZE):
        pages.extend(paginate(ordered, skip))

    assert pages == ordered
    assert len({record.id for record in pages}) == len(records)


def test_top_rated_only_lists_series_filtered_by_counted_genre(sample_records) -> None:
    assert [record.name for record in handle_top_rated(sample_records)] == ["Harbor Cafe"]
    assert handle_top_rated(sample_records, "Comedy (1)")[0].name == "Harbor Cafe"
    assert handle_top_rated(sample_records, "Action") == []


def test_season_releases_orders_newest_season_first() -> None:
    records = [
        make_record(mal_id=1, subtype="tv", year=2025, season="winter", rating=9),
        make_record(mal_id=2, subtype="tv", year=2025, season="summer", rating=6),
        make_record(mal_id=3, subtype="tv", year=2025, season="summer", rating=8),
        make_record(mal_id=4, subtype="tv", year=2026, season="winter", rating=7),
        make_record(mal_id=5, subtype="tv"),
    ]

    current = handle_season_releases(records, today=TODAY)
    assert [record.mal_id for record in current] == [3, 2, 1]

    upcoming = handle_season_releases(records, "Upcoming (1)", today=TODAY)
    assert [record.mal_id for record in upcoming] == [4]

    winter = handle_season_releases(records, "2025 - Winter", today=TODAY)
    assert [record.mal_id for record in winter] == [1]


def test_airing_filters_weekday_long_running_and_hentai() -> None:
    records = [
        make_record(mal_id=1, subtype="tv", status="ONGOING", broadcastDay="friday", year=2025, rating=7),
        make_record(mal_id=2, subtype="tv", status="ONGOING", broadcastDay="monday", year=2025, rating=8),
        make_record(mal_id=3, subtype="tv", status="ONGOING", year=1999, episodes=1100, rating=9),
        make_record(mal_id=4, subtype="tv", status="ONGOING", year=2025, tags=["Hentai"]),
        make_record(mal_id=5, subtype="tv", status="FINISHED", year=2025),
    ]

    assert [r.mal_id for r in handle_airing(records, today=TODAY)] == [2, 1]
    assert [r.mal_id for r in handle_airing(records, exclude_long_running=False, today=TODAY)] == [3, 2, 1]
    assert [r.mal_id for r in handle_airing(records, "Friday (1)", today=TODAY)] == [1]


@pytest.mark.parametrize(
    ("episodes", "year", "expected"),
    [(12, 2025, False), (520, 2025, True), (24, 2015, True), (220, 2024, True)],
)
def test_is_long_running(episodes: int, year: int, expected: bool) -> None:
    record = make_record(mal_id=1, episodes=episodes, year=year)
    assert is_long_running(record, TODAY) is expected


def test_movies_special_filters() -> None:
    records = [
        make_record(mal_id=1, subtype="movie", status="FINISHED", year=2025, rating=7),
        make_record(mal_id=2, subtype="movie", status="FINISHED", year=2025, rating=9),
        make_record(mal_id=3, subtype="movie", status="FINISHED", year=2020, rating=10),
        make_record(mal_id=4, subtype="movie", status="UPCOMING", year=2027),
        make_record(mal_id=5, subtype="movie", status="UPCOMING", year=2026),
    ]

    assert [r.mal_id for r in handle_movies(records, "Upcoming (2)", TODAY)] == [4, 5]
    assert [r.mal_id for r in handle_movies(records, "New Releases", TODAY)] == [2, 1]
    assert [r.mal_id for r in handle_movies(records, today=TODAY)][0] == 3


@pytest.mark.anyio("asyncio")
async def test_catalog_service_dispatches_by_catalog_id(catalog_file: Path) -> None:
    service = CatalogService(CatalogStore(catalog_file))

    top = await service.get_catalog_payload("anime", TOP_RATED, CatalogExtra())
    assert [meta["name"] for meta in top["metas"]] == ["Harbor Cafe"]

    movies = await service.get_catalog_payload("anime", MOVIES, CatalogExtra())
    assert [meta["name"] for meta in movies["metas"]] == ["Starlight Voyage", "Echoes Compilation"]

    airing = await service.get_catalog_payload(
        "anime", AIRING, CatalogExtra(genre="Friday"), today=date(2025, 10, 15)
    )
    assert [meta["id"] for meta in airing["metas"]] == ["mal-202"]


@pytest.mark.anyio("asyncio")
async def test_catalog_service_rejects_unknown_catalogs(catalog_file: Path) -> None:
    service = CatalogService(CatalogStore(catalog_file))

    assert await service.get_catalog_payload("anime", "anime-unknown", CatalogExtra()) == {"metas": []}
    assert await service.get_catalog_payload("series", TOP_RATED, CatalogExtra()) == {"metas": []}
    assert await service.get_catalog_payload("series", SERIES_SEARCH, CatalogExtra()) == {"metas": []}


@pytest.mark.anyio("asyncio")
async def test_catalog_service_search_catalog_filters_type(catalog_file: Path) -> None:
    service = CatalogService(CatalogStore(catalog_file))

    payload = await service.get_catalog_payload(
        "series", SERIES_SEARCH, CatalogExtra(search="harbor")
    )

    assert [meta["name"] for meta in payload["metas"]] == ["Harbor Cafe"]
