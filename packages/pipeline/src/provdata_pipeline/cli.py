"""
cli.py — Click CLI entrypoint for provdata ingestion.

Usage:
    provdata init-db
    provdata seed-provinces ./data/provinces.geojson
    provdata import food-security ./data/food_security.csv --user ayu --role field_officer
    provdata import connections ./data/connections.json --dry-run
    provdata reclassify food-security
    provdata status
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click

from provdata_pipeline.loaders.fact_loader import BulkImportResult, FactLoader
from provdata_pipeline.sources.geojson import GeoJSONSource
from provdata_pipeline.transforms.rows import read_rows
from provdata_pipeline.utils.logging import configure_logging, get_logger
from provdata_shared.config import settings
from provdata_shared.constants import (
    ALL_DATASETS,
    NEIGHBOR_SETS_TABLE,
    PROVINCES_TABLE,
    TRADE_MARGINS_TABLE,
)
from provdata_shared.datasets import DATASETS
from provdata_shared.db import (
    fetch_dicts,
    get_duckdb_connection,
    init_schema,
    read_scope,
    unit_of_work,
)
from provdata_shared.errors import BulkImportAborted, ProvDataError
from provdata_shared.models.principal import SYSTEM, Principal
from provdata_shared.provinces import seed_provinces
from provdata_shared.schema import all_tables

log = get_logger(__name__)

# Route and neighbour tables carry no year column
_UNDATED_TABLES = (TRADE_MARGINS_TABLE, NEIGHBOR_SETS_TABLE)

# Show at most this many row errors in the console summary.
MAX_ERRORS_SHOWN = 20


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log output format",
)
def main(log_level: str, log_format: str) -> None:
    """provdata ingestion tools (DuckDB at settings.duckdb_path)."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.command("init-db")
def init_db() -> None:
    """Create the provinces, fact and connection tables."""
    init_schema(get_duckdb_connection())
    click.echo(f"Schema ready at {settings.duckdb_path}")


@main.command("seed-provinces")
@click.argument("source", required=False)
@click.option("--name-property", default=None, help="Feature property holding the province name")
@click.option("--code-property", default=None, help="Feature property holding the province code")
def seed_provinces_cmd(
    source: str | None,
    name_property: str | None,
    code_property: str | None,
) -> None:
    """Upsert provinces from a GeoJSON FeatureCollection (file path or URL)."""
    geo_source = GeoJSONSource(
        source,
        name_property=name_property,
        code_property=code_property,
    )
    try:
        df = asyncio.run(geo_source.run())
        seeds = GeoJSONSource.to_seeds(df)
        init_schema(get_duckdb_connection())
        with unit_of_work() as cur:
            created, updated = seed_provinces(cur, seeds)
    except ProvDataError as exc:
        raise click.ClickException(exc.message) from exc

    missing = sum(1 for s in seeds if s.geometry is None)
    click.echo(
        f"Provinces seeded: {created} created, {updated} updated ({missing} without geometry)"
    )


@main.command("import")
@click.argument("dataset", type=click.Choice(ALL_DATASETS))
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--user", default=SYSTEM.name, show_default=True, help="Principal name")
@click.option("--role", default=None, help="Principal role (default: trusted system principal)")
@click.option("--dry-run", is_flag=True, help="Validate and reconcile, then roll back")
@click.option("--chunk-size", type=int, default=None, help="Rows per transaction (0 = one)")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
def import_cmd(
    dataset: str,
    file: Path,
    user: str,
    role: str | None,
    dry_run: bool,
    chunk_size: int | None,
    as_json: bool,
) -> None:
    """Bulk-import DATASET rows from a CSV or JSON FILE."""
    principal = _principal(user, role)
    loader = FactLoader(chunk_size=chunk_size)
    try:
        rows = read_rows(file)
        log.info("import_file_read", dataset=dataset, file=str(file), rows=len(rows))
        result = loader.submit_bulk(dataset, rows, principal, dry_run=dry_run)
    except BulkImportAborted as exc:
        _echo_result(exc.committed, as_json)
        raise click.ClickException(exc.message) from exc
    except ProvDataError as exc:
        raise click.ClickException(exc.message) from exc

    _echo_result(result, as_json)
    if result.failed:
        raise SystemExit(1)


@main.command()
@click.argument("dataset", type=click.Choice([n for n, s in DATASETS.items() if s.derive]))
@click.option("--user", default=SYSTEM.name, show_default=True)
@click.option("--role", default=None, help="Principal role (default: trusted system principal)")
def reclassify(dataset: str, user: str, role: str | None) -> None:
    """Recompute cached categories / conditions / cluster labels."""
    try:
        drifted = FactLoader().reclassify(dataset, _principal(user, role))
    except ProvDataError as exc:
        raise click.ClickException(exc.message) from exc
    click.echo(f"{dataset}: {drifted} row(s) reclassified")


@main.command()
def status() -> None:
    """Show row counts and years per table."""
    click.echo(f"Database: {settings.duckdb_path}")
    try:
        with read_scope() as cur:
            provinces = fetch_dicts(
                cur,
                "SELECT count(*) AS total, count(geometry) AS with_geometry "
                f"FROM {PROVINCES_TABLE}",
            )[0]
            click.echo(
                f"  {'provinces':24s} {provinces['total']:6d} rows  "
                f"({provinces['with_geometry']} with geometry)"
            )
            for table in all_tables():
                if table == PROVINCES_TABLE:
                    continue
                if table in _UNDATED_TABLES:
                    total = fetch_dicts(cur, f"SELECT count(*) AS total FROM {table}")[0]["total"]
                    click.echo(f"  {table:24s} {total:6d} rows")
                    continue
                row = fetch_dicts(
                    cur,
                    f"SELECT count(*) AS total, min(year) AS first, max(year) AS last FROM {table}",
                )[0]
                years = f"{row['first']}–{row['last']}" if row["total"] else "-"
                click.echo(f"  {table:24s} {row['total']:6d} rows  years {years}")
    except ProvDataError as exc:
        raise click.ClickException(f"{exc.message} (run 'provdata init-db' first?)") from exc


def _principal(user: str, role: str | None) -> Principal:
    """Local operators act as the trusted system principal unless a role is given."""
    if role is None:
        return Principal(name=user, role=SYSTEM.role, trusted=True)
    return Principal(name=user, role=role)


def _echo_result(result: BulkImportResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), default=str, indent=2))
        return
    mode = " (dry run, rolled back)" if result.dry_run else ""
    click.echo(
        f"{result.dataset}{mode}: {result.total_processed} processed, "
        f"{result.created} created, {result.updated} updated, {result.failed} failed "
        f"[{result.status}] in {result.duration_ms} ms"
    )
    for err in result.errors[:MAX_ERRORS_SHOWN]:
        click.echo(f"  row {err['index']}: {err['error']}", err=True)
    if len(result.errors) > MAX_ERRORS_SHOWN:
        click.echo(f"  … {len(result.errors) - MAX_ERRORS_SHOWN} more", err=True)


if __name__ == "__main__":
    main()
