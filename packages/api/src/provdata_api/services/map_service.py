"""
Map composition: joins province geometry with fact rows into GeoJSON.

Features are joined on province_id; the cached province_name on fact rows is
never used for the join. A province with a fact row but no geometry is left
out of the features and reported in metadata.missing_geometry.
"""

from __future__ import annotations

from typing import Any

import duckdb
import structlog

from provdata_shared.config import settings
from provdata_shared.constants import (
    COMBINED,
    COMBINED_DEFAULT,
    CONNECTIONS,
    CONNECTIONS_TABLE,
    SUPPLY_CHAIN,
)
from provdata_shared.datasets import DATASETS, DatasetSpec, get_dataset
from provdata_shared.db import fetch_dicts, fetch_one, read_scope
from provdata_shared.errors import MapDataNotFound, ValidationError
from provdata_shared.models.maps import ConnectionsMap, Feature, FeatureCollection, MapFilters
from provdata_shared.models.province import Province
from provdata_shared.provinces import list_provinces, resolve

from provdata_api.services.connection_service import fetch_edges
from provdata_api.utils.cache import province_cache

logger = structlog.get_logger(__name__)

_INDEX_KEY = "province_index"


# ---------------------------------------------------------------------------
# Province index (cached)
# ---------------------------------------------------------------------------


def province_index(
    cur: duckdb.DuckDBPyConnection,
    required_ids: set[str] | None = None,
) -> dict[str, Province]:
    """
    Return {province_id: Province} for every registered province.

    Served from the TTL cache; reloaded when any of required_ids is absent
    (a province seeded after the cache was filled).
    """
    return province_cache.get_or_load(
        _INDEX_KEY,
        lambda: {p.id: p for p in list_provinces(cur)},
        stale=lambda index: bool(required_ids) and not required_ids.issubset(index),
    )


# ---------------------------------------------------------------------------
# compose_map
# ---------------------------------------------------------------------------


def compose_map(
    dataset: str,
    year: int,
    filters: MapFilters | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> FeatureCollection:
    """
    Compose a FeatureCollection for one dataset selector and year.

    Args:
        dataset: A fact dataset, "connections" or "combined".
        year:    Year to map.
        filters: category (food-security), condition (supply-chain),
                 cluster_id (clustering) or month (climate, required).

    Returns:
        FeatureCollection, or ConnectionsMap for "connections".

    Raises:
        ValidationError: Bad year, unknown selector or inapplicable filter.
        MapDataNotFound: No rows for the year; carries available_years.
    """
    filters = filters or MapFilters()
    if not settings.year_min <= year <= settings.year_max:
        raise ValidationError(
            f"Year must be between {settings.year_min} and {settings.year_max}",
            details={"year": year},
        )

    if dataset in (CONNECTIONS, COMBINED):
        _check_filters(dataset, filters, allowed={})
        with read_scope(conn) as cur:
            if dataset == CONNECTIONS:
                return _connections_map(cur, year)
            return _combined_map(cur, year)

    spec = get_dataset(dataset)
    _check_filters(dataset, filters, allowed=spec.filters)
    if spec.monthly and filters.month is None:
        raise ValidationError(f"{dataset} maps require a month filter (1-12)")
    with read_scope(conn) as cur:
        return _dataset_map(cur, spec, year, filters)


def _check_filters(dataset: str, filters: MapFilters, *, allowed: dict[str, str]) -> None:
    extra = sorted(set(filters.active()) - set(allowed))
    if extra:
        raise ValidationError(
            f"Filter(s) {', '.join(extra)} do not apply to {dataset} maps",
            details={"dataset": dataset, "filters": extra},
        )


def _filter_sql(spec: DatasetSpec, filters: MapFilters) -> tuple[str, list[Any]]:
    active = filters.active()
    clauses = [f"{spec.filters[name]} = ?" for name in active]
    return "".join(f" AND {c}" for c in clauses), list(active.values())


def _fact_rows(
    cur: duckdb.DuckDBPyConnection,
    spec: DatasetSpec,
    year: int,
    filters: MapFilters,
) -> list[dict[str, Any]]:
    where, params = _filter_sql(spec, filters)
    return fetch_dicts(
        cur,
        f"SELECT * FROM {spec.table} WHERE year = ?{where} ORDER BY province_name",
        [year, *params],
    )


def _available_years(
    cur: duckdb.DuckDBPyConnection,
    table: str,
    where: str = "",
    params: list[Any] | None = None,
) -> list[int]:
    rows = fetch_dicts(
        cur,
        f"SELECT DISTINCT year FROM {table} WHERE 1 = 1{where} ORDER BY year",
        params or [],
    )
    return [r["year"] for r in rows]


def _base_properties(province: Province, year: int | None = None) -> dict[str, Any]:
    props: dict[str, Any] = {
        "province_id": province.id,
        "province_name": province.name,
        "province_code": province.code,
    }
    if year is not None:
        props["year"] = year
    return props


def _fact_properties(spec: DatasetSpec, row: dict[str, Any]) -> dict[str, Any]:
    decoded = spec.decode(row)
    props: dict[str, Any] = {"record_id": decoded["id"]}
    if spec.monthly:
        props["month"] = decoded["month"]
    props.update({col: decoded[col] for col in spec.data_columns})
    if spec.name == SUPPLY_CHAIN:
        props["balance"] = (decoded["rice_production"] or 0) - (decoded["rice_consumption"] or 0)
    return props


def _missing_geometry_metadata(names: list[str]) -> dict[str, Any]:
    if names:
        logger.info("map_features_without_geometry", count=len(names), provinces=sorted(names))
    return {"missing_geometry": len(names), "missing_geometry_provinces": sorted(names)}


def _dataset_map(
    cur: duckdb.DuckDBPyConnection,
    spec: DatasetSpec,
    year: int,
    filters: MapFilters,
) -> FeatureCollection:
    rows = _fact_rows(cur, spec, year, filters)
    if not rows:
        where, params = _filter_sql(spec, filters)
        raise MapDataNotFound(
            f"No {spec.name} data found for year {year}",
            available_years=_available_years(cur, spec.table, where, params),
        )

    index = province_index(cur, {r["province_id"] for r in rows})
    features: list[Feature] = []
    missing: list[str] = []
    for row in rows:
        province = index[row["province_id"]]
        if not province.has_geometry:
            missing.append(province.name)
            continue
        features.append(
            Feature(
                geometry=province.geometry,
                properties={**_base_properties(province, year), **_fact_properties(spec, row)},
            )
        )

    return FeatureCollection(
        features=features,
        metadata={
            "dataset": spec.name,
            "year": year,
            "filters": filters.active(),
            "total_provinces": len(features),
            **_missing_geometry_metadata(missing),
        },
    )


def _combined_map(cur: duckdb.DuckDBPyConnection, year: int) -> FeatureCollection:
    specs = [get_dataset(name) for name in COMBINED_DEFAULT]
    rows_by_dataset = {spec.name: _fact_rows(cur, spec, year, MapFilters()) for spec in specs}

    if not any(rows_by_dataset.values()):
        years: set[int] = set()
        for spec in specs:
            years.update(_available_years(cur, spec.table))
        raise MapDataNotFound(
            f"No {' or '.join(COMBINED_DEFAULT)} data found for year {year}",
            available_years=sorted(years),
        )

    # province_id -> {property key: fact properties}
    per_province: dict[str, dict[str, Any]] = {}
    for spec in specs:
        key = spec.table
        for row in rows_by_dataset[spec.name]:
            per_province.setdefault(row["province_id"], {})[key] = _fact_properties(spec, row)

    index = province_index(cur, set(per_province))
    features: list[Feature] = []
    missing: list[str] = []
    for province_id, parts in sorted(per_province.items(), key=lambda kv: index[kv[0]].name):
        province = index[province_id]
        if not province.has_geometry:
            missing.append(province.name)
            continue
        features.append(
            Feature(
                geometry=province.geometry,
                properties={**_base_properties(province, year), **parts},
            )
        )

    return FeatureCollection(
        features=features,
        metadata={
            "dataset": COMBINED,
            "datasets": list(COMBINED_DEFAULT),
            "year": year,
            "total_provinces": len(features),
            "counts": {name: len(rows) for name, rows in rows_by_dataset.items()},
            **_missing_geometry_metadata(missing),
        },
    )


def _connections_map(cur: duckdb.DuckDBPyConnection, year: int) -> ConnectionsMap:
    edges = fetch_edges(cur, year=year)
    if not edges:
        raise MapDataNotFound(
            f"No connections found for year {year}",
            available_years=_available_years(cur, CONNECTIONS_TABLE),
        )

    stats: dict[str, dict[str, Any]] = {}
    for edge in edges:
        src = stats.setdefault(edge.source.id, {"outgoing": 0, "incoming": 0, "neighbors": set()})
        dst = stats.setdefault(edge.target.id, {"outgoing": 0, "incoming": 0, "neighbors": set()})
        src["outgoing"] += 1
        src["neighbors"].add(edge.target.id)
        dst["incoming"] += 1
        dst["neighbors"].add(edge.source.id)

    index = province_index(cur, set(stats))
    features: list[Feature] = []
    missing: list[str] = []
    for province_id in sorted(stats, key=lambda pid: index[pid].name):
        province = index[province_id]
        if not province.has_geometry:
            missing.append(province.name)
            continue
        node = stats[province_id]
        features.append(
            Feature(
                geometry=province.geometry,
                properties={
                    **_base_properties(province, year),
                    "outgoing": node["outgoing"],
                    "incoming": node["incoming"],
                    "total": node["outgoing"] + node["incoming"],
                    "unique_neighbors": len(node["neighbors"]),
                },
            )
        )

    return ConnectionsMap(
        features=features,
        edges=edges,
        metadata={
            "dataset": CONNECTIONS,
            "year": year,
            "total_provinces": len(features),
            "total_connections": len(edges),
            **_missing_geometry_metadata(missing),
        },
    )


# ---------------------------------------------------------------------------
# Supplementary views
# ---------------------------------------------------------------------------


def base_map(*, conn: duckdb.DuckDBPyConnection | None = None) -> FeatureCollection:
    """Every province that has geometry, without fact data."""
    with read_scope(conn) as cur:
        provinces = list_provinces(cur, with_geometry=True)
    return FeatureCollection(
        features=[Feature(geometry=p.geometry, properties=_base_properties(p)) for p in provinces],
        metadata={"dataset": "base", "total_provinces": len(provinces)},
    )


def map_overview(*, conn: duckdb.DuckDBPyConnection | None = None) -> dict[str, Any]:
    """Record counts and available years per dataset, plus geometry coverage."""
    with read_scope(conn) as cur:
        provinces = list_provinces(cur)
        datasets: dict[str, Any] = {}
        tables = {name: spec.table for name, spec in DATASETS.items()}
        tables[CONNECTIONS] = CONNECTIONS_TABLE
        for name, table in tables.items():
            count = fetch_one(cur, f"SELECT count(*) AS n FROM {table}")
            datasets[name] = {
                "records": int(count["n"]) if count else 0,
                "available_years": _available_years(cur, table),
            }

    without = [p.name for p in provinces if not p.has_geometry]
    return {
        "provinces": {
            "total": len(provinces),
            "with_geometry": len(provinces) - len(without),
            "without_geometry": len(without),
            "without_geometry_provinces": without,
        },
        "datasets": datasets,
    }


def province_summary(
    province_ref: str,
    year: int | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """
    Everything known about one province: the record for `year` (or the
    latest one) of each annual dataset, available years per dataset and its
    connection counts.
    """
    with read_scope(conn) as cur:
        province = resolve(cur, province_ref)
        data: dict[str, Any] = {}
        available: dict[str, list[int]] = {}
        for name, spec in DATASETS.items():
            where, params = " AND province_id = ?", [province.id]
            available[name] = _available_years(cur, spec.table, where, params)
            if spec.monthly:
                continue
            sql = f"SELECT * FROM {spec.table} WHERE province_id = ?"
            sql_params: list[Any] = [province.id]
            if year is not None:
                sql += " AND year = ?"
                sql_params.append(year)
            row = fetch_one(cur, sql + " ORDER BY year DESC LIMIT 1", sql_params)
            data[name] = spec.decode(row) if row else None

        year_clause = " AND year = ?" if year is not None else ""
        year_params = [year] if year is not None else []
        counts = fetch_one(
            cur,
            f"SELECT count(*) FILTER (WHERE source_province_id = ?) AS outgoing, "
            f"count(*) FILTER (WHERE target_province_id = ?) AS incoming "
            f"FROM {CONNECTIONS_TABLE} "
            f"WHERE (source_province_id = ? OR target_province_id = ?){year_clause}",
            [province.id, province.id, province.id, province.id, *year_params],
        )
        available[CONNECTIONS] = _available_years(
            cur,
            CONNECTIONS_TABLE,
            " AND (source_province_id = ? OR target_province_id = ?)",
            [province.id, province.id],
        )

    outgoing = int(counts["outgoing"] or 0) if counts else 0
    incoming = int(counts["incoming"] or 0) if counts else 0
    return {
        "province": {**province.identity(), "has_geometry": province.has_geometry},
        "requested_year": year,
        "available_years": available,
        "data": data,
        "connections": {"outgoing": outgoing, "incoming": incoming, "total": outgoing + incoming},
    }
