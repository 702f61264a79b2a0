"""Write catalog, facet and report files produced by a build."""

from __future__ import annotations

import gzip
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..facets import FilterOptions
from ..models import AnimeRecord

logger = logging.getLogger(__name__)

CATALOG_VERSION = "5.0"
CATALOG_FILE = "catalog.json"
FILTER_OPTIONS_FILE = "filter-options.json"
MATCH_REPORT_FILE = "imdb-match-report.json"


def build_envelope(
    records: Sequence[AnimeRecord],
    *,
    source: str,
    stats: Mapping[str, Any] | None = None,
    build_date: datetime | None = None,
    version: str = CATALOG_VERSION,
) -> dict[str, Any]:
    build_date = build_date or datetime.now(timezone.utc)
    return {
        "buildDate": build_date.isoformat().replace("+00:00", "Z"),
        "version": version,
        "source": source,
        "stats": {"totalAnime": len(records), **(stats or {})},
        "catalog": [record.to_catalog_dict() for record in records],
    }


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_name(path.name + ".tmp")
    partial.write_text(text, encoding="utf-8")
    partial.replace(path)


def write_json(path: Path, payload: Any, *, indent: int | None = 2) -> Path:
    _write_text(path, json.dumps(payload, ensure_ascii=False, indent=indent))
    logger.info("Saved %s (%s bytes)", path, path.stat().st_size)
    return path


def write_catalog(output_dir: Path, envelope: Mapping[str, Any]) -> tuple[Path, Path]:
    """Write ``catalog.json`` and its gzip copy; return both paths."""

    json_path = write_json(output_dir / CATALOG_FILE, envelope)
    gz_path = output_dir / f"{CATALOG_FILE}.gz"
    partial = gz_path.with_name(gz_path.name + ".tmp")
    with gzip.open(partial, "wt", encoding="utf-8") as handle:
        json.dump(envelope, handle, ensure_ascii=False, separators=(",", ":"))
    partial.replace(gz_path)
    logger.info("Saved %s (%s bytes)", gz_path, gz_path.stat().st_size)
    return json_path, gz_path


def write_filter_options(output_dir: Path, options: FilterOptions) -> Path:
    return write_json(output_dir / FILTER_OPTIONS_FILE, options.to_payload())


def write_match_report(output_dir: Path, report: Mapping[str, Any]) -> Path:
    return write_json(output_dir / MATCH_REPORT_FILE, report)
