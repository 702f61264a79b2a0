"""Command line interface for the offline catalog build pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from ..config import get_settings
from .builder import regenerate_facets, run_broadcast_enrichment, run_build
from .http import UpstreamError
from .sources import SOURCES

app = typer.Typer(help="Build and maintain the AnimeStream catalog files.")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL for this run."
    ),
) -> None:
    """Configure logging before any command runs."""

    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def build(
    source: str = typer.Option(
        "kitsu",
        "--source",
        help=f"Catalog source: {', '.join(sorted(SOURCES))}.",
        show_default=True,
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", min=1, help="Only process the first N titles."
    ),
    skip_cinemeta: bool = typer.Option(
        False, "--skip-cinemeta", help="Skip Cinemeta logo/background/cast enrichment."
    ),
    skip_imdb: bool = typer.Option(
        False, "--skip-imdb", help="Skip IMDB dataset title matching."
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", help="Directory for the generated files (default DATA_DIR)."
    ),
) -> None:
    """Fetch, match, group and enrich a catalog, then write it to disk."""

    if source not in SOURCES:
        typer.echo(f"Unknown source {source!r}; choose from {sorted(SOURCES)}", err=True)
        raise typer.Exit(code=2)

    try:
        result = asyncio.run(
            run_build(
                get_settings(),
                source,
                limit=limit,
                skip_cinemeta=skip_cinemeta,
                skip_imdb=skip_imdb,
                output_dir=output_dir,
            )
        )
    except (ValueError, RuntimeError, UpstreamError) as exc:
        typer.echo(f"Build failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(
        json.dumps(
            {
                "totalAnime": len(result.records),
                "matching": result.report.summary(),
                "files": [str(path) for path in result.paths],
            },
            indent=2,
        )
    )


@app.command()
def facets(
    catalog: Optional[Path] = typer.Option(
        None, "--catalog", help="Catalog file to count (default: configured catalog)."
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", help="Where to write filter-options.json."
    ),
) -> None:
    """Regenerate filter-options.json from an existing catalog."""

    settings = get_settings()
    catalog_path = catalog or settings.catalog_path
    try:
        options = regenerate_facets(catalog_path, output_dir or catalog_path.parent)
    except (OSError, ValueError) as exc:
        typer.echo(f"Could not read catalog {catalog_path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(options.stats, indent=2))


@app.command("enrich-broadcast")
def enrich_broadcast(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Report what would change without writing files."
    ),
) -> None:
    """Add broadcast weekdays to airing series using Jikan."""

    try:
        enricher = asyncio.run(run_broadcast_enrichment(get_settings(), dry_run=dry_run))
    except (OSError, ValueError) as exc:
        typer.echo(f"Broadcast enrichment failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    stats = enricher.stats
    typer.echo(
        json.dumps(
            {
                "candidates": stats.candidates,
                "updated": stats.updated,
                "malIdsFound": stats.mal_ids_found,
                "notFound": stats.not_found,
                "dryRun": dry_run,
            },
            indent=2,
        )
    )
