"""Fact record lookups and per-dataset aggregate statistics."""

from __future__ import annotations

from typing import Any, get_args

import duckdb

from provdata_shared.classification import FOOD_SECURITY_BANDS, food_security_category
from provdata_shared.constants import (
    CLUSTERING,
    FOOD_SECURITY,
    GWPR,
    PROVINCES_TABLE,
    SUPPLY_CHAIN,
    GwprVariable,
)
from provdata_shared.datasets import get_dataset
from provdata_shared.db import fetch_dicts, fetch_one, read_scope
from provdata_shared.errors import NotFoundError, ValidationError
from provdata_shared.provinces import resolve


def get_record(
    dataset: str,
    province_ref: str,
    year: int,
    month: int | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """
    Fetch one fact record by natural key.

    Raises:
        ValidationError: month missing for a monthly dataset, or given for an annual one.
        NotFoundError:   Unknown province or no record for the key.
    """
    spec = get_dataset(dataset)
    if spec.monthly and month is None:
        raise ValidationError(f"{dataset} records are monthly; month is required")
    if not spec.monthly and month is not None:
        raise ValidationError(f"{dataset} records are annual; month does not apply")

    with read_scope(conn) as cur:
        province = resolve(cur, province_ref)
        sql = f"SELECT * FROM {spec.table} WHERE province_id = ? AND year = ?"
        params: list[Any] = [province.id, year]
        if spec.monthly:
            sql += " AND month = ?"
            params.append(month)
        row = fetch_one(cur, sql, params)

    if row is None:
        key = f"{year}-{month:02d}" if month is not None else str(year)
        raise NotFoundError(
            f"No {dataset} record for {province.name} {key}",
            details={"province_id": province.id, "year": year, "month": month},
        )
    record = spec.decode(row)
    # Registry name is authoritative for display
    record["province_name"] = province.name
    return record


def food_security_categories(
    year: int | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """Count food security records per category, with each band's label."""
    spec = get_dataset(FOOD_SECURITY)
    sql = f"SELECT category, count(*) AS n FROM {spec.table}"
    params: list[Any] = []
    if year is not None:
        sql += " WHERE year = ?"
        params.append(year)
    sql += " GROUP BY category"

    with read_scope(conn) as cur:
        counts = {r["category"]: int(r["n"]) for r in fetch_dicts(cur, sql, params)}

    categories = []
    lower = 0.0
    for number, (upper, _label) in enumerate(FOOD_SECURITY_BANDS, start=1):
        band = food_security_category(min(upper, 100.0))
        categories.append(
            {
                **band.to_dict(),
                "min_index": lower,
                "max_index": min(upper, 100.0),
                "count": counts.get(number, 0),
            }
        )
        lower = upper
    return {
        "year": year,
        "total": sum(counts.values()),
        "categories": categories,
    }


# ---------------------------------------------------------------------------
# Food security
# ---------------------------------------------------------------------------


def food_security_average(
    year: int,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """Mean food security index over the provinces reporting in a year."""
    spec = get_dataset(FOOD_SECURITY)
    with read_scope(conn) as cur:
        row = fetch_one(
            cur,
            "SELECT avg(food_security_index) AS average_index, "
            "count(food_security_index) AS provinces_count "
            f"FROM {spec.table} WHERE year = ?",
            [year],
        )
    return {
        "year": year,
        "average_index": _rounded(row["average_index"]),
        "provinces_count": int(row["provinces_count"]),
    }


def food_security_trend(
    province_ref: str,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """
    One province's index per year with the change against the previous year.

    The first year, and any year following a null index, has no change.

    Raises:
        NotFoundError: Unknown province.
    """
    spec = get_dataset(FOOD_SECURITY)
    sql = f"""
        SELECT year, food_security_index AS fs_index,
               lag(food_security_index) OVER (ORDER BY year) AS previous
        FROM {spec.table}
        WHERE province_id = ?
        ORDER BY year
    """
    with read_scope(conn) as cur:
        province = resolve(cur, province_ref)
        rows = fetch_dicts(cur, sql, [province.id])

    trend = []
    for r in rows:
        change = change_pct = None
        if r["fs_index"] is not None and r["previous"] is not None:
            change = _rounded(r["fs_index"] - r["previous"])
            if r["previous"]:
                change_pct = _rounded((r["fs_index"] - r["previous"]) / r["previous"] * 100)
        trend.append(
            {"year": r["year"], "index": r["fs_index"], "change": change, "change_pct": change_pct}
        )
    return {"province": {"id": province.id, "name": province.name}, "trend": trend}


def food_security_ranking(
    year: int,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """Provinces ranked by food security index, highest first, ties by name."""
    spec = get_dataset(FOOD_SECURITY)
    sql = f"""
        SELECT p.id, p.name, p.code, f.food_security_index AS fs_index, f.category,
               rank() OVER (ORDER BY f.food_security_index DESC) AS fs_rank
        FROM {spec.table} f
        JOIN {PROVINCES_TABLE} p ON p.id = f.province_id
        WHERE f.year = ? AND f.food_security_index IS NOT NULL
        ORDER BY fs_rank, p.name
    """
    with read_scope(conn) as cur:
        rows = fetch_dicts(cur, sql, [year])
    return {
        "year": year,
        "total_provinces": len(rows),
        "ranking": [
            {
                "rank": int(r["fs_rank"]),
                "province": {"id": r["id"], "name": r["name"], "code": r["code"]},
                "index": r["fs_index"],
                "category": r["category"],
            }
            for r in rows
        ],
    }


# ---------------------------------------------------------------------------
# Supply chain, clustering and GWPR
# ---------------------------------------------------------------------------


def supply_chain_stats(
    year: int,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """
    Year totals and means for the supply chain dataset, with a count per condition.

    Raises:
        NotFoundError: No supply chain records for the year.
    """
    spec = get_dataset(SUPPLY_CHAIN)
    sql = f"""
        SELECT count(*) AS provinces_count,
               avg(trade_margin) AS average_trade_margin,
               avg(chain_count) AS average_chain_count,
               sum(rice_production) AS total_production,
               sum(rice_consumption) AS total_consumption,
               count(*) FILTER (WHERE condition = 'surplus') AS surplus,
               count(*) FILTER (WHERE condition = 'deficit') AS deficit,
               count(*) FILTER (WHERE condition = 'balanced') AS balanced
        FROM {spec.table}
        WHERE year = ?
    """
    with read_scope(conn) as cur:
        row = fetch_one(cur, sql, [year])

    if not row["provinces_count"]:
        raise NotFoundError(f"No {SUPPLY_CHAIN} records for {year}", details={"year": year})
    return {
        "year": year,
        "provinces_count": int(row["provinces_count"]),
        "average_trade_margin": _rounded(row["average_trade_margin"]),
        "average_chain_count": _rounded(row["average_chain_count"]),
        "total_production": _rounded(row["total_production"]),
        "total_consumption": _rounded(row["total_consumption"]),
        "conditions": {c: int(row[c]) for c in ("surplus", "deficit", "balanced")},
    }


def cluster_stats(
    year: int,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """Province count and members per cluster id; id -1 is reported as the outliers."""
    spec = get_dataset(CLUSTERING)
    sql = f"""
        SELECT c.cluster_id, count(*) AS count,
               list(p.name ORDER BY p.name) AS provinces
        FROM {spec.table} c
        JOIN {PROVINCES_TABLE} p ON p.id = c.province_id
        WHERE c.year = ?
        GROUP BY c.cluster_id
        ORDER BY c.cluster_id
    """
    with read_scope(conn) as cur:
        rows = fetch_dicts(cur, sql, [year])

    clusters = []
    outliers = None
    for r in rows:
        group = {
            "cluster_id": r["cluster_id"],
            "count": int(r["count"]),
            "provinces": list(r["provinces"]),
        }
        if r["cluster_id"] == -1:
            outliers = {**group, "label": "Outlier"}
        else:
            clusters.append({**group, "label": f"Cluster {r['cluster_id']}"})
    return {
        "year": year,
        "total_clusters": len(clusters),
        "total_outliers": outliers["count"] if outliers else 0,
        "clusters": clusters,
        "outliers": outliers,
    }


def cluster_outliers(
    year: int,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> list[dict[str, Any]]:
    """Clustering records flagged as outliers (cluster id -1) in a year, by province name."""
    spec = get_dataset(CLUSTERING)
    with read_scope(conn) as cur:
        rows = fetch_dicts(
            cur,
            f"SELECT c.* FROM {spec.table} c JOIN {PROVINCES_TABLE} p ON p.id = c.province_id "
            "WHERE c.year = ? AND c.cluster_id = -1 ORDER BY p.name",
            [year],
        )
    return [spec.decode(r) for r in rows]


def gwpr_variable_stats(
    variable: str,
    year: int | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """
    Where one GWPR variable is significant: provinces and mean coefficient per group.

    Args:
        variable: A GWPR variable name.
        year:     Restrict to one model year.

    Raises:
        ValidationError: Unknown variable.
    """
    if variable not in get_args(GwprVariable):
        raise ValidationError(
            f"Unknown GWPR variable '{variable}'", details={"variable": variable}
        )
    spec = get_dataset(GWPR)
    sql = f"""
        SELECT g.group_id, count(*) AS count,
               list(p.name ORDER BY p.name) AS provinces,
               avg(TRY_CAST(json_extract_string(g.coefficients, ?) AS DOUBLE))
                   AS average_coefficient
        FROM {spec.table} g
        JOIN {PROVINCES_TABLE} p ON p.id = g.province_id
        WHERE list_contains(from_json(g.significant_variables, '["VARCHAR"]'), ?)
    """
    params: list[Any] = [f"$.{variable}", variable]
    if year is not None:
        sql += " AND g.year = ?"
        params.append(year)
    sql += " GROUP BY g.group_id ORDER BY g.group_id"

    with read_scope(conn) as cur:
        rows = fetch_dicts(cur, sql, params)

    groups = [
        {
            "group_id": r["group_id"],
            "count": int(r["count"]),
            "provinces": list(r["provinces"]),
            "average_coefficient": _rounded(r["average_coefficient"]),
        }
        for r in rows
    ]
    return {
        "variable": variable,
        "year": year,
        "total_provinces": sum(g["count"] for g in groups),
        "groups": groups,
    }


def _rounded(value: float | None, digits: int = 2) -> float | None:
    return None if value is None else round(float(value), digits)
