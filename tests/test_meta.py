"""Tests for meta lookups and the Jikan synopsis client."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from app.meta import MetaService, parse_meta_id
from app.services.jikan import JikanClient, SynopsisCache
from app.store import CatalogStore


@pytest.mark.parametrize(
    ("meta_id", "expected"),
    [
        ("mal-202", ("mal", 202)),
        ("202", ("mal", 202)),
        ("kitsu-303", ("kitsu", 303)),
        ("anilist-9", ("anilist", 9)),
        ("tt1000001", ("imdb", "tt1000001")),
        ("something", None),
    ],
)
def test_parse_meta_id(meta_id: str, expected: object) -> None:
    assert parse_meta_id(meta_id) == expected


def jikan_client(handler) -> tuple[JikanClient, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.jikan.example"
    )
    return JikanClient(http_client), http_client


@pytest.mark.anyio("asyncio")
async def test_meta_service_resolves_every_id_form(catalog_file: Path) -> None:
    service = MetaService(CatalogStore(catalog_file))

    for meta_id in ("mal-202", "202", "kitsu-303"):
        payload = await service.get_meta_payload("series", meta_id)
        assert payload["meta"]["name"] == "Harbor Cafe"

    movie = await service.get_meta_payload("movie", "tt1000001")
    assert movie["meta"]["type"] == "movie"
    assert movie["meta"]["description"] == "A crew chases a falling star across the sky."

    assert await service.get_meta_payload("series", "mal-999") == {"meta": None}
    assert await service.get_meta_payload("channel", "mal-202") == {"meta": None}


@pytest.mark.anyio("asyncio")
async def test_meta_service_prefers_jikan_synopsis(catalog_file: Path) -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        return httpx.Response(200, json={"data": {"synopsis": " From MAL. "}})

    jikan, http_client = jikan_client(handler)
    async with http_client:
        service = MetaService(CatalogStore(catalog_file), jikan)
        first = await service.get_meta_payload("series", "mal-202")
        second = await service.get_meta_payload("series", "mal-202")

    assert first["meta"]["description"] == "From MAL."
    assert second["meta"]["description"] == "From MAL."
    assert requested == ["/anime/202"]


@pytest.mark.anyio("asyncio")
async def test_jikan_failure_falls_back_to_stored_description(catalog_file: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    jikan, http_client = jikan_client(handler)
    async with http_client:
        service = MetaService(CatalogStore(catalog_file), jikan)
        payload = await service.get_meta_payload("series", "mal-202")

    assert payload["meta"]["description"] == "Regulars of a seaside cafe share small stories."
    assert len(jikan.cache) == 0


@pytest.mark.anyio("asyncio")
async def test_jikan_invalid_json_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    jikan, http_client = jikan_client(handler)
    async with http_client:
        assert await jikan.fetch_synopsis(1) is None


def test_synopsis_cache_evicts_oldest_and_expires(monkeypatch: pytest.MonkeyPatch) -> None:
    now = [1000.0]
    monkeypatch.setattr("app.services.jikan.time.monotonic", lambda: now[0])
    cache = SynopsisCache(ttl_seconds=60, max_entries=2)

    cache.set(1, "one")
    cache.set(2, "two")
    cache.set(3, "three")
    assert cache.get(1) is None
    assert cache.get(3) == "three"

    now[0] += 61
    assert cache.get(2) is None
    assert len(cache) == 1
