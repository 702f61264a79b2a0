from __future__ import annotations

import httpx
import pytest

from app.models import AnimeRecord
from app.pipeline.enrich import (
    METAHUB_LOGO_URL,
    CinemetaEnricher,
    JikanBroadcastEnricher,
    best_match,
    clean_search_title,
    with_default_logo,
)
from app.pipeline.http import RateLimitedClient


def record(**data) -> AnimeRecord:
    return AnimeRecord.model_validate(data)


CAST = [f"Actor {index}" for index in range(12)]


def cinemeta_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/meta/movie/tt1000001.json":
        return httpx.Response(
            200,
            json={
                "meta": {
                    "logo": "https://images.example/logo.png",
                    "background": "https://images.example/bg.jpg",
                    "cast": CAST,
                    "genres": ["Action", "Animation"],
                }
            },
        )
    if request.url.path == "/meta/series/tt2000002.json":
        return httpx.Response(500)
    return httpx.Response(404)


@pytest.mark.anyio("asyncio")
async def test_cinemeta_enrichment_fills_missing_fields() -> None:
    movie = record(imdbId="tt1000001", name="Starlight Voyage", subtype="movie", genres=["Action"])
    failing = record(imdbId="tt2000002", name="Harbor Cafe", subtype="tv")
    missing = record(imdbId="tt3000003", name="Echoes", subtype="tv")
    local = record(malId=9, name="Lonely Star")

    async with httpx.AsyncClient(transport=httpx.MockTransport(cinemeta_handler)) as http_client:
        client = RateLimitedClient(http_client, min_interval=0, max_retries=0)
        enricher = CinemetaEnricher(client, "https://cinemeta.example/", batch_size=2)
        enriched = await enricher.enrich_all([movie, failing, missing, local])

    assert [entry.id for entry in enriched] == ["tt1000001", "tt2000002", "tt3000003", "mal-9"]
    starlight = enriched[0]
    assert starlight.logo == "https://images.example/logo.png"
    assert starlight.background == "https://images.example/bg.jpg"
    assert starlight.cast == CAST[:10]
    assert starlight.genres == ["Action", "Animation"]
    assert enriched[1:] == [failing, missing, local]
    assert enricher.stats.as_dict() == {"enriched": 1, "logos": 1, "backgrounds": 1, "cast": 1}


@pytest.mark.anyio("asyncio")
async def test_cinemeta_keeps_existing_artwork() -> None:
    movie = record(
        imdbId="tt1000001",
        name="Starlight Voyage",
        subtype="movie",
        logo="https://own.example/logo.png",
        cast=["Lead"],
    )

    async with httpx.AsyncClient(transport=httpx.MockTransport(cinemeta_handler)) as http_client:
        enricher = CinemetaEnricher(RateLimitedClient(http_client, min_interval=0), "https://cinemeta.example")
        enriched = await enricher.enrich(movie)

    assert enriched.logo == "https://own.example/logo.png"
    assert enriched.cast == ["Lead"]
    assert enriched.background == "https://images.example/bg.jpg"


def test_default_logo_uses_imdb_id() -> None:
    with_imdb = record(imdbId="tt1000001", name="Starlight Voyage")
    without_imdb = record(malId=9, name="Lonely Star")

    assert with_default_logo(with_imdb).logo == METAHUB_LOGO_URL.format(imdb_id="tt1000001")
    assert with_default_logo(without_imdb) is without_imdb


def test_clean_search_title() -> None:
    assert clean_search_title("Re:Zero - Starting Life") == "Re Zero Starting Life"


def test_best_match_preference_order() -> None:
    special = {"mal_id": 1, "title": "Harbor Cafe Special", "status": "Finished Airing"}
    exact = {
        "mal_id": 2,
        "title": "Minato Kissa",
        "title_english": "Harbor Cafe",
        "status": "Currently Airing",
    }
    airing = {"mal_id": 3, "title": "Other Show", "status": "Currently Airing"}

    assert best_match("Harbor Cafe", [special, exact]) is exact
    assert best_match("Harbor Cafe", [special]) is special
    assert best_match("Unrelated", [special, airing]) is airing
    assert best_match("Unrelated", [special]) is None
    assert best_match("", [special]) is None


def jikan_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/v4/anime/202/full":
        return httpx.Response(200, json={"data": {"mal_id": 202, "broadcast": {"day": "Fridays"}}})
    if path == "/v4/anime":
        assert request.url.params["q"] == "Night Train Express"
        assert request.url.params["limit"] == "5"
        assert request.url.params["sfw"] == "true"
        return httpx.Response(
            200,
            json={
                "data": [
                    {"mal_id": 55, "title": "Night Train Express", "broadcast": {"day": "Sundays"}}
                ]
            },
        )
    return httpx.Response(404)


@pytest.mark.anyio("asyncio")
async def test_broadcast_enrichment() -> None:
    by_mal = record(malId=202, name="Harbor Cafe", status="ONGOING")
    by_search = record(id="kitsu-77", kitsuId=77, name="Night Train: Express", status="ONGOING")
    finished = record(malId=3, name="Done", status="FINISHED")
    scheduled = record(malId=4, name="Scheduled", status="ONGOING", broadcastDay="monday")
    unknown = record(malId=999, name="Unknown", status="ONGOING")

    async with httpx.AsyncClient(transport=httpx.MockTransport(jikan_handler)) as http_client:
        enricher = JikanBroadcastEnricher(
            RateLimitedClient(http_client, min_interval=0), "https://jikan.example/v4/"
        )
        result = await enricher.enrich_all([by_mal, by_search, finished, scheduled, unknown])

    assert result[0].broadcast_day == "friday"
    assert result[1].broadcast_day == "sunday"
    assert result[1].mal_id == 55
    assert result[1].id == "kitsu-77"
    assert result[2:] == [finished, scheduled, unknown]
    stats = enricher.stats
    assert (stats.candidates, stats.updated, stats.mal_ids_found, stats.not_found) == (3, 2, 1, 1)
