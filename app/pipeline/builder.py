"""Orchestrates a catalog build from one source through to the written files."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

import httpx

from ..config import Settings
from ..facets import FilterOptions, build_filter_options
from ..models import AnimeRecord
from ..store import parse_catalog_payload, read_catalog_payload
from .curation import Curation, filter_nsfw, load_curation
from .enrich import CinemetaEnricher, JikanBroadcastEnricher, with_default_logo
from .grouping import group_seasons
from .http import RateLimitedClient, UpstreamError
from .imdb import IMDB_AKAS_URL, IMDB_BASICS_URL, ImdbMatcher, MatchResult
from .mappings import FribbMappings, load_fribb_mappings
from .sources import SourceAdapter, create_source
from .writer import (
    CATALOG_VERSION,
    build_envelope,
    write_catalog,
    write_filter_options,
    write_match_report,
)

logger = logging.getLogger(__name__)


@dataclass
class MatchReport:
    """Per-confidence lists of IMDB matching outcomes."""

    from_source: int = 0
    from_fribb: int = 0
    high: list[dict[str, Any]] = field(default_factory=list)
    medium: list[dict[str, Any]] = field(default_factory=list)
    low: list[dict[str, Any]] = field(default_factory=list)
    no_match: list[dict[str, Any]] = field(default_factory=list)

    def record(self, record: AnimeRecord, result: MatchResult | None) -> None:
        entry: dict[str, Any] = {
            "id": record.id,
            "name": record.name,
            "year": record.year,
            "subtype": record.subtype,
        }
        if result is None:
            self.no_match.append(entry)
            return
        entry.update(
            imdbId=result.imdb_id,
            score=result.score.total,
            breakdown=result.score.breakdown(),
            candidates=result.top_candidates,
        )
        getattr(self, result.confidence).append(entry)

    def summary(self) -> dict[str, int]:
        return {
            "fromSource": self.from_source,
            "fromFribb": self.from_fribb,
            "fromImdbHigh": len(self.high),
            "fromImdbMedium": len(self.medium),
            "rejectedLow": len(self.low),
            "noMatch": len(self.no_match),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary(),
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "noMatch": self.no_match,
        }


@dataclass
class BuildResult:
    records: list[AnimeRecord]
    filter_options: FilterOptions
    report: MatchReport
    envelope: dict[str, Any]
    paths: list[Path] = field(default_factory=list)


def with_imdb_id(record: AnimeRecord, imdb_id: str) -> AnimeRecord:
    """Adopt ``imdb_id`` as both the IMDB id and the record id."""

    return record.model_copy(update={"id": imdb_id, "imdb_id": imdb_id})


def sort_by_popularity(records: Sequence[AnimeRecord]) -> list[AnimeRecord]:
    return sorted(records, key=lambda record: record.popularity or 0, reverse=True)


class CatalogBuilder:
    """Runs collect, match, filter, group, curate and enrich for one source."""

    def __init__(
        self,
        source: SourceAdapter,
        *,
        mappings: FribbMappings | None = None,
        matcher: ImdbMatcher | None = None,
        curation: Curation | None = None,
        cinemeta: CinemetaEnricher | None = None,
    ) -> None:
        self._source = source
        self._mappings = mappings or FribbMappings()
        self._matcher = matcher
        self._curation = curation or Curation()
        self._cinemeta = cinemeta
        self.report = MatchReport()

    def match_ids(self, records: Sequence[AnimeRecord]) -> list[AnimeRecord]:
        matched: list[AnimeRecord] = []
        for record in records:
            record = self._mappings.fill_ids(record)
            if record.imdb_id:
                self.report.from_source += 1
                matched.append(with_imdb_id(record, record.imdb_id))
                continue

            imdb_id = self._mappings.imdb_for(record)
            if imdb_id:
                self.report.from_fribb += 1
                matched.append(with_imdb_id(record, imdb_id))
                continue

            if self._matcher is None:
                matched.append(record)
                continue
            result = self._matcher.match(record, self._source.synonyms(record))
            self.report.record(record, result)
            if result is not None and result.accepted:
                record = with_imdb_id(record, result.imdb_id)
            matched.append(record)
        logger.info("IMDB matching: %s", self.report.summary())
        return matched

    async def build(self, limit: int | None = None) -> list[AnimeRecord]:
        records = await self._source.collect(limit)
        records = self.match_ids(records)
        records = filter_nsfw(records)
        records = group_seasons(records)
        records = self._curation.apply(records)
        if self._cinemeta is not None:
            records = await self._cinemeta.enrich_all(records)
        records = [with_default_logo(record) for record in records]
        return sort_by_popularity(records)

    @property
    def source_label(self) -> str:
        parts = [self._source.name, "fribb"]
        if self._matcher is not None:
            parts.append("imdb")
        if self._cinemeta is not None:
            parts.append("cinemeta")
        return "+".join(parts)

    def stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = dict(self.report.summary())
        if self._cinemeta is not None:
            stats["cinemeta"] = self._cinemeta.stats.as_dict()
        return stats


@asynccontextmanager
async def open_client(settings: Settings) -> AsyncIterator[RateLimitedClient]:
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(30.0, connect=10.0),
        headers={"User-Agent": f"{settings.app_name}/1.0"},
        follow_redirects=True,
    ) as http_client:
        yield RateLimitedClient(
            http_client,
            min_interval=settings.request_delay,
            max_retries=settings.request_retries,
            rate_limit_wait=settings.rate_limit_wait,
        )


async def load_imdb_matcher(client: RateLimitedClient, data_dir: Path) -> ImdbMatcher | None:
    """Download the IMDB datasets once and index them."""

    imdb_dir = data_dir / "imdb"
    basics = imdb_dir / "title.basics.tsv.gz"
    akas = imdb_dir / "title.akas.tsv.gz"
    try:
        for url, path in ((IMDB_BASICS_URL, basics), (IMDB_AKAS_URL, akas)):
            if not path.exists():
                logger.info("Downloading %s", url)
                await client.download(url, path)
    except UpstreamError as exc:
        logger.warning("IMDB datasets unavailable, skipping title matching: %s", exc)
        return None
    return ImdbMatcher.from_files(basics, akas)


async def run_build(
    settings: Settings,
    source_name: str,
    *,
    limit: int | None = None,
    skip_cinemeta: bool = False,
    skip_imdb: bool = False,
    output_dir: Path | None = None,
    client: RateLimitedClient | None = None,
    today: date | None = None,
) -> BuildResult:
    """Build a catalog from ``source_name`` and write it to ``output_dir``."""

    output_dir = output_dir or settings.data_dir
    if client is None:
        async with open_client(settings) as owned:
            return await run_build(
                settings,
                source_name,
                limit=limit,
                skip_cinemeta=skip_cinemeta,
                skip_imdb=skip_imdb,
                output_dir=output_dir,
                client=owned,
                today=today,
            )

    source = create_source(source_name, client, settings, today=today)
    mappings = await load_fribb_mappings(client, str(settings.fribb_url))
    matcher = None if skip_imdb else await load_imdb_matcher(client, settings.data_dir)
    builder = CatalogBuilder(
        source,
        mappings=mappings,
        matcher=matcher,
        curation=load_curation(settings.curation_path),
        cinemeta=None if skip_cinemeta else CinemetaEnricher(client, str(settings.cinemeta_url)),
    )
    records = await builder.build(limit)
    if not records:
        raise RuntimeError(f"Source {source_name!r} produced no records")

    options = build_filter_options(records, today)
    envelope = build_envelope(records, source=builder.source_label, stats=builder.stats())
    json_path, gz_path = write_catalog(output_dir, envelope)
    paths = [
        json_path,
        gz_path,
        write_filter_options(output_dir, options),
        write_match_report(output_dir, builder.report.to_dict()),
    ]
    logger.info("Build complete: %s anime written to %s", len(records), output_dir)
    return BuildResult(records, options, builder.report, envelope, paths)


def load_catalog_records(path: Path) -> tuple[dict[str, Any], list[AnimeRecord]]:
    return parse_catalog_payload(read_catalog_payload(path))


def regenerate_facets(
    catalog_path: Path, output_dir: Path, today: date | None = None
) -> FilterOptions:
    """Recount the facet file from an existing catalog."""

    _, records = load_catalog_records(catalog_path)
    options = build_filter_options(records, today)
    write_filter_options(output_dir, options)
    return options


async def run_broadcast_enrichment(
    settings: Settings,
    *,
    dry_run: bool = False,
    client: RateLimitedClient | None = None,
    today: date | None = None,
) -> JikanBroadcastEnricher:
    """Add broadcast days to airing series in the current catalog."""

    if client is None:
        async with open_client(settings) as owned:
            return await run_broadcast_enrichment(
                settings, dry_run=dry_run, client=owned, today=today
            )

    catalog_path = settings.catalog_path
    envelope, records = load_catalog_records(catalog_path)
    enricher = JikanBroadcastEnricher(client, str(settings.jikan_api_url))
    records = await enricher.enrich_all(records)
    if dry_run:
        logger.info("Dry run: catalog left unchanged")
        return enricher

    output_dir = catalog_path.parent
    write_catalog(
        output_dir,
        build_envelope(
            records,
            source=envelope.get("source") or "unknown",
            stats={
                key: value
                for key, value in (envelope.get("stats") or {}).items()
                if key != "totalAnime"
            },
            version=str(envelope.get("version") or CATALOG_VERSION),
        ),
    )
    write_filter_options(output_dir, build_filter_options(records, today))
    return enricher
