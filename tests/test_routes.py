"""End-to-end tests for the addon HTTP routes."""

from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from conftest import SAMPLE_CATALOG, write_catalog_file


def build_client(catalog_path: Path) -> TestClient:
    settings = Settings(
        _env_file=None,
        CATALOG_FILE=str(catalog_path),
        FILTER_OPTIONS_FILE=str(catalog_path.parent / "filter-options.json"),
        FETCH_SYNOPSIS=False,
    )
    return TestClient(create_app(settings))


def test_health_reports_loaded_catalog(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "healthy"
    assert payload["totalAnime"] == 3
    assert payload["buildDate"] == "2025-10-01T00:00:00Z"


def test_health_reports_missing_catalog(tmp_path: Path) -> None:
    with build_client(tmp_path / "missing.json") as client:
        response = client.get("/health")
        catalog = client.get("/catalog/anime/anime-top-rated.json")

    assert response.status_code == 200
    assert response.json()["status"] == "unhealthy"
    assert catalog.json() == {"metas": []}


def test_manifest_routes_honour_config_segment(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        default = client.get("/manifest.json").json()
        configured = client.get("/showCounts=false/manifest.json").json()
        encoded = client.get("/excludeLongRunning%3Dtrue%26showCounts%3Dfalse/manifest.json").json()

    top_default = default["catalogs"][0]["extra"][0]["options"]
    top_configured = configured["catalogs"][0]["extra"][0]["options"]
    assert top_default == ["Comedy (1)", "Slice of Life (1)"]
    assert top_configured == ["Comedy", "Slice of Life"]
    assert encoded["catalogs"][0]["extra"][0]["options"] == top_configured


def test_catalog_route_with_extra_segment(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        plain = client.get("/catalog/anime/anime-movies.json").json()
        filtered = client.get("/catalog/anime/anime-movies/genre=Drama%20(1).json").json()
        skipped = client.get("/catalog/anime/anime-movies/skip=100.json").json()
        configured = client.get(
            "/excludeLongRunning=false/catalog/anime/anime-top-rated/genre=Comedy.json"
        ).json()

    assert [meta["name"] for meta in plain["metas"]] == ["Starlight Voyage", "Echoes Compilation"]
    assert [meta["name"] for meta in filtered["metas"]] == ["Echoes Compilation"]
    assert skipped == {"metas": []}
    assert [meta["name"] for meta in configured["metas"]] == ["Harbor Cafe"]


def test_search_route_decodes_query(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        response = client.get("/catalog/movie/anime-movies-search/search=starlight%20voyage.json")

    assert response.status_code == 200
    assert [meta["id"] for meta in response.json()["metas"]] == ["tt1000001"]


def test_meta_route_returns_meta_or_null(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        found = client.get("/meta/series/mal-202.json").json()
        configured = client.get("/showCounts=false/meta/series/kitsu-303.json").json()
        missing = client.get("/meta/series/mal-999.json").json()

    assert found["meta"]["name"] == "Harbor Cafe"
    assert configured["meta"]["id"] == "mal-202"
    assert missing == {"meta": None}


def test_cors_headers_and_options_probe(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        response = client.get("/manifest.json")
        probe = client.options("/manifest.json")

    assert response.headers["access-control-allow-origin"] == "*"
    assert probe.status_code in (200, 204)
    assert probe.headers["access-control-allow-origin"] == "*"


def test_unknown_route_returns_json_404(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        response = client.get("/definitely/not/here")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_admin_reload_and_stats(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        write_catalog_file(catalog_file, SAMPLE_CATALOG[:2])
        reload = client.get("/admin/reload").json()
        stats = client.get("/admin/stats").json()
        api_stats = client.get("/api/stats").json()

    assert reload["success"] is True
    assert reload["totalAnime"] == 2
    assert stats["totalAnime"] == 2
    assert stats["ready"] is True
    assert stats["seasons"] == 2
    assert api_stats["totalAnime"] == 2


def test_configure_page_renders(catalog_file: Path) -> None:
    with build_client(catalog_file) as client:
        response = client.get("/configure")
        configured = client.get("/showCounts=false/configure")

    assert response.status_code == 200
    assert "AnimeStream" in response.text
    assert '"showCounts": true' in response.text
    assert '"showCounts": false' in configured.text
