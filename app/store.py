"""In-memory catalog store built from the pre-bundled catalog file."""

from __future__ import annotations

import asyncio
import gzip
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import ValidationError

from .facets import FilterOptions, build_filter_options
from .models import AnimeRecord, coerce_int
from .seasons import SeasonKey

logger = logging.getLogger(__name__)

EXTERNAL_ID_KINDS = ("imdb", "mal", "kitsu", "anilist")


class CatalogFormatError(ValueError):
    """Raised when a catalog file does not hold a usable list of records."""


@dataclass(frozen=True)
class CatalogSnapshot:
    """A fully indexed, read-only view of one catalog file."""

    records: tuple[AnimeRecord, ...] = ()
    by_id: Mapping[str, AnimeRecord] = field(default_factory=dict)
    by_external_id: Mapping[str, Mapping[int | str, AnimeRecord]] = field(
        default_factory=dict
    )
    by_season: Mapping[str, tuple[AnimeRecord, ...]] = field(default_factory=dict)
    filter_options: FilterOptions | None = None
    build_date: str | None = None
    version: str | None = None
    source: str | None = None
    error: str | None = None

    @property
    def available(self) -> bool:
        return bool(self.records)

    @classmethod
    def empty(cls, error: str | None = None) -> "CatalogSnapshot":
        return cls(error=error)

    @classmethod
    def from_records(
        cls,
        records: Iterable[AnimeRecord],
        *,
        filter_options: FilterOptions | None = None,
        envelope: Mapping[str, Any] | None = None,
    ) -> "CatalogSnapshot":
        catalog = tuple(records)
        by_id: dict[str, AnimeRecord] = {}
        by_external: dict[str, dict[int | str, AnimeRecord]] = {
            kind: {} for kind in EXTERNAL_ID_KINDS
        }
        by_season: dict[str, list[AnimeRecord]] = {}

        for record in catalog:
            by_id.setdefault(record.id, record)
            for kind, value in record.external_ids().items():
                by_external[kind].setdefault(value, record)
            if record.year and record.season:
                key = SeasonKey(record.year, record.season).index_key
                by_season.setdefault(key, []).append(record)

        envelope = envelope or {}
        version = envelope.get("version")
        return cls(
            records=catalog,
            by_id=by_id,
            by_external_id=by_external,
            by_season={key: tuple(items) for key, items in by_season.items()},
            filter_options=filter_options or build_filter_options(catalog),
            build_date=envelope.get("buildDate"),
            version=str(version) if version is not None else None,
            source=envelope.get("source"),
        )


def read_catalog_payload(path: Path) -> Any:
    """Read a JSON or gzip-compressed JSON catalog file."""

    if path.suffix == ".gz":
        with gzip.open(path, "rt", encoding="utf-8") as handle:
            return json.load(handle)
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def parse_catalog_payload(
    payload: Any,
) -> tuple[dict[str, Any], list[AnimeRecord]]:
    """Return the envelope fields and validated records of a catalog payload.

    Both the ``{buildDate, version, source, stats, catalog}`` envelope and a
    bare top-level list are accepted. Individual invalid entries are skipped.
    """

    if isinstance(payload, list):
        envelope: dict[str, Any] = {}
        raw_records = payload
    elif isinstance(payload, dict) and isinstance(payload.get("catalog"), list):
        envelope = {key: value for key, value in payload.items() if key != "catalog"}
        raw_records = payload["catalog"]
    else:
        raise CatalogFormatError("Catalog file must contain a list of records")

    records: list[AnimeRecord] = []
    skipped = 0
    for entry in raw_records:
        try:
            records.append(AnimeRecord.model_validate(entry))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning("Skipped %s invalid catalog entries", skipped)
    if not records:
        raise CatalogFormatError("Catalog contains no valid records")
    return envelope, records


def read_filter_options(path: Path | None) -> FilterOptions | None:
    if path is None or not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            return FilterOptions.model_validate(json.load(handle))
    except (OSError, ValueError) as exc:
        logger.warning("Could not load filter options from %s: %s", path, exc)
        return None


class CatalogStore:
    """Owns the loaded catalog and its lookup indices.

    ``load`` is single-flight: concurrent callers share one in-flight read and
    all receive the same snapshot. Failures never propagate; they produce an
    empty snapshot whose ``error`` explains what went wrong.
    """

    def __init__(
        self,
        catalog_path: Path,
        filter_options_path: Path | None = None,
    ) -> None:
        self._catalog_path = Path(catalog_path)
        self._filter_options_path = (
            Path(filter_options_path) if filter_options_path else None
        )
        self._snapshot: CatalogSnapshot | None = None
        self._inflight: asyncio.Task[CatalogSnapshot] | None = None

    @property
    def catalog_path(self) -> Path:
        return self._catalog_path

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot or CatalogSnapshot.empty()

    @property
    def load_error(self) -> str | None:
        return self.snapshot.error

    @property
    def build_date(self) -> str | None:
        return self.snapshot.build_date

    async def load(self, *, force: bool = False) -> CatalogSnapshot:
        """Load the catalog once, or again when ``force`` is set."""

        if self._snapshot is not None and not force:
            return self._snapshot

        task = self._inflight
        if task is None:
            task = asyncio.create_task(self._load())
            self._inflight = task
        try:
            snapshot = await asyncio.shield(task)
        finally:
            if self._inflight is task and task.done():
                self._inflight = None
        return snapshot

    async def _load(self) -> CatalogSnapshot:
        if force_reload := self._snapshot is not None:
            logger.info("Reloading catalog from %s", self._catalog_path)
        snapshot = await asyncio.to_thread(self._read_snapshot)
        self._snapshot = snapshot
        if snapshot.available:
            logger.info(
                "Catalog %s: %s anime (built %s)",
                "reloaded" if force_reload else "loaded",
                len(snapshot.records),
                snapshot.build_date or "unknown",
            )
        return snapshot

    def _read_snapshot(self) -> CatalogSnapshot:
        path = self._catalog_path
        if not path.exists():
            logger.warning(
                "No catalog found at %s; run the build pipeline to create one", path
            )
            return CatalogSnapshot.empty(f"Catalog file not found: {path}")
        try:
            envelope, records = parse_catalog_payload(read_catalog_payload(path))
        except (OSError, EOFError, ValueError) as exc:
            logger.error("Failed to load catalog from %s: %s", path, exc)
            return CatalogSnapshot.empty(str(exc))
        return CatalogSnapshot.from_records(
            records,
            filter_options=read_filter_options(self._filter_options_path),
            envelope=envelope,
        )

    def is_ready(self) -> bool:
        return self.snapshot.available

    def get_all(self) -> tuple[AnimeRecord, ...]:
        return self.snapshot.records

    def get_by_id(self, record_id: str) -> AnimeRecord | None:
        return self.snapshot.by_id.get(record_id)

    def get_by_external_id(self, kind: str, value: int | str) -> AnimeRecord | None:
        """Look a record up by ``imdb``, ``mal``, ``kitsu`` or ``anilist`` id."""

        index = self.snapshot.by_external_id.get(kind)
        if index is None:
            return None
        key: int | str | None = str(value) if kind == "imdb" else coerce_int(value)
        if key is None:
            return None
        return index.get(key)

    def get_by_season(self, year: int, season: str) -> tuple[AnimeRecord, ...]:
        key = SeasonKey(int(year), season.lower()).index_key
        return self.snapshot.by_season.get(key, ())

    def available_seasons(self) -> list[str]:
        return sorted(self.snapshot.by_season, reverse=True)

    def filter_options(self) -> FilterOptions | None:
        return self.snapshot.filter_options

    def stats(self) -> dict[str, Any]:
        snapshot = self.snapshot
        return {
            "totalAnime": len(snapshot.records),
            "buildDate": snapshot.build_date,
            "version": snapshot.version,
        }
