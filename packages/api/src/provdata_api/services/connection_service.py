"""Province graph queries over province_connections, trade_margins and neighbor_sets."""

from __future__ import annotations

import json
from typing import Any, get_args

import duckdb

from provdata_shared.constants import (
    CONNECTIONS_TABLE,
    NEIGHBOR_SETS_TABLE,
    PROVINCES_TABLE,
    TRADE_MARGINS_TABLE,
    ConnectionDirection,
)
from provdata_shared.db import fetch_dicts, read_scope
from provdata_shared.errors import ValidationError
from provdata_shared.models.connection import (
    Edge,
    NeighborSet,
    ProvinceRef,
    RankedProvince,
    TradeMargin,
)
from provdata_shared.provinces import list_provinces, resolve

# Endpoint names and codes always come from the registry, never from the
# denormalized columns on the connection row.
_EDGE_SELECT = f"""
    SELECT c.id, c.source_province_id, c.target_province_id, c.year, c.created_at,
           s.name AS source_name, s.code AS source_code,
           t.name AS target_name, t.code AS target_code
    FROM {CONNECTIONS_TABLE} c
    JOIN {PROVINCES_TABLE} s ON s.id = c.source_province_id
    JOIN {PROVINCES_TABLE} t ON t.id = c.target_province_id
"""


def fetch_edges(
    cur: duckdb.DuckDBPyConnection,
    *,
    year: int | None = None,
    province_id: str | None = None,
    direction: str = "both",
) -> list[Edge]:
    """Return edges ordered by year, source name, target name."""
    clauses: list[str] = []
    params: list[Any] = []
    if year is not None:
        clauses.append("c.year = ?")
        params.append(year)
    if province_id is not None:
        if direction == "out":
            clauses.append("c.source_province_id = ?")
            params.append(province_id)
        elif direction == "in":
            clauses.append("c.target_province_id = ?")
            params.append(province_id)
        else:
            clauses.append("(c.source_province_id = ? OR c.target_province_id = ?)")
            params.extend([province_id, province_id])

    sql = _EDGE_SELECT
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY c.year, s.name, t.name"
    return [Edge.from_db_row(r) for r in fetch_dicts(cur, sql, params)]


def query_connections(
    province_ref: str,
    direction: str = "both",
    year: int | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> list[Edge]:
    """
    Edges touching one province.

    Args:
        province_ref: Province id, name or code.
        direction:    "out" (province is source), "in" (target) or "both".
        year:         Restrict to one year.

    Raises:
        NotFoundError:   Unknown province.
        ValidationError: Unknown direction.
    """
    if direction not in get_args(ConnectionDirection):
        raise ValidationError(
            f"direction must be one of {', '.join(get_args(ConnectionDirection))}",
            details={"direction": direction},
        )
    with read_scope(conn) as cur:
        province = resolve(cur, province_ref)
        return fetch_edges(cur, year=year, province_id=province.id, direction=direction)


def trade_matrix(year: int, *, conn: duckdb.DuckDBPyConnection | None = None) -> dict[str, Any]:
    """All provinces, the year's edges and an adjacency map {source_id: [target_id, …]}."""
    with read_scope(conn) as cur:
        provinces = list_provinces(cur)
        edges = fetch_edges(cur, year=year)

    adjacency: dict[str, list[str]] = {}
    for edge in edges:
        adjacency.setdefault(edge.source.id, []).append(edge.target.id)

    return {
        "year": year,
        "provinces": [ProvinceRef(id=p.id, name=p.name, code=p.code) for p in provinces],
        "edges": edges,
        "adjacency": adjacency,
    }


def connection_statistics(
    top_n: int = 10,
    year: int | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> list[RankedProvince]:
    """
    Rank provinces by total degree (outgoing + incoming), ties broken by name.

    One aggregation over both edge endpoints; provinces with no edges are
    not ranked.
    """
    if top_n < 1:
        raise ValidationError("top_n must be at least 1", details={"top_n": top_n})

    year_filter = "WHERE year = ?" if year is not None else ""
    params: list[Any] = [year, year] if year is not None else []
    sql = f"""
        WITH endpoints AS (
            SELECT source_province_id AS province_id, 1 AS is_out, 0 AS is_in
            FROM {CONNECTIONS_TABLE} {year_filter}
            UNION ALL
            SELECT target_province_id AS province_id, 0 AS is_out, 1 AS is_in
            FROM {CONNECTIONS_TABLE} {year_filter}
        )
        SELECT p.id, p.name, p.code,
               sum(e.is_out) AS outgoing,
               sum(e.is_in) AS incoming,
               count(*) AS total
        FROM endpoints e
        JOIN {PROVINCES_TABLE} p ON p.id = e.province_id
        GROUP BY p.id, p.name, p.code
        ORDER BY total DESC, p.name
        LIMIT ?
    """
    with read_scope(conn) as cur:
        rows = fetch_dicts(cur, sql, [*params, top_n])

    return [
        RankedProvince(
            rank=rank,
            province=ProvinceRef(id=r["id"], name=r["name"], code=r["code"]),
            outgoing=int(r["outgoing"]),
            incoming=int(r["incoming"]),
            total=int(r["total"]),
        )
        for rank, r in enumerate(rows, start=1)
    ]


def connection_summary(
    year: int | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> dict[str, Any]:
    """Total edges, the years present and edges per year."""
    year_filter = "WHERE year = ?" if year is not None else ""
    with read_scope(conn) as cur:
        rows = fetch_dicts(
            cur,
            f"SELECT year, count(*) AS count FROM {CONNECTIONS_TABLE} {year_filter} "
            "GROUP BY year ORDER BY year",
            [year] if year is not None else [],
        )
    return {
        "total_connections": sum(int(r["count"]) for r in rows),
        "years": [r["year"] for r in rows],
        "connections_by_year": [{"year": r["year"], "count": int(r["count"])} for r in rows],
    }


def trade_margins(
    source_ref: str | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> list[TradeMargin]:
    """Trade margin routes, optionally only those leaving one province, ordered by names."""
    sql = f"""
        SELECT m.id, m.source_province_id, m.target_province_id,
               m.distribution_costs, m.distribution_volume,
               s.name AS source_name, s.code AS source_code,
               t.name AS target_name, t.code AS target_code
        FROM {TRADE_MARGINS_TABLE} m
        JOIN {PROVINCES_TABLE} s ON s.id = m.source_province_id
        JOIN {PROVINCES_TABLE} t ON t.id = m.target_province_id
    """
    params: list[Any] = []
    with read_scope(conn) as cur:
        if source_ref is not None:
            sql += " WHERE m.source_province_id = ?"
            params.append(resolve(cur, source_ref).id)
        rows = fetch_dicts(cur, sql + " ORDER BY s.name, t.name", params)
    return [TradeMargin.from_db_row(r) for r in rows]


def neighbor_sets(
    province_ref: str | None = None,
    *,
    conn: duckdb.DuckDBPyConnection | None = None,
) -> list[NeighborSet]:
    """
    Neighbour sets, optionally only the one whose main province is given.

    Neighbours keep the order they were submitted in; their names come
    from the registry. A neighbour id no longer in the registry is dropped.
    """
    sql = f"""
        SELECT n.id, n.neighbor_ids, p.id AS province_id, p.name, p.code
        FROM {NEIGHBOR_SETS_TABLE} n
        JOIN {PROVINCES_TABLE} p ON p.id = n.province_id
    """
    params: list[Any] = []
    with read_scope(conn) as cur:
        if province_ref is not None:
            sql += " WHERE n.province_id = ?"
            params.append(resolve(cur, province_ref).id)
        rows = fetch_dicts(cur, sql + " ORDER BY p.name", params)
        registry = {
            p.id: ProvinceRef(id=p.id, name=p.name, code=p.code) for p in list_provinces(cur)
        }

    return [
        NeighborSet(
            id=r["id"],
            province=ProvinceRef(id=r["province_id"], name=r["name"], code=r["code"]),
            neighbors=[registry[i] for i in json.loads(r["neighbor_ids"]) if i in registry],
        )
        for r in rows
    ]
