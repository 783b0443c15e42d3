"""
provinces.py — Province registry: identity resolution, lookups and seeding.

A province reference may be its id, its name or its code (names and codes
compare case-insensitively, exactly), tried in that order. There is no
fuzzy matching: an unknown reference is a NotFoundError.

Usage:
    from provdata_shared.db import read_scope
    from provdata_shared.provinces import resolve

    with read_scope() as cur:
        province = resolve(cur, "Jawa Barat")
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

import duckdb
import structlog

from provdata_shared.constants import PROVINCES_TABLE
from provdata_shared.db import fetch_dicts, fetch_one, utcnow
from provdata_shared.errors import NotFoundError, ValidationError
from provdata_shared.models.province import Province, ProvinceSeed

logger = structlog.get_logger(__name__)

_COLUMNS = "id, name, code, geometry, metadata, created_at, updated_at"

# One round trip: id beats name beats code when a reference matches several.
_RESOLVE_SQL = f"""
    SELECT {_COLUMNS},
           CASE WHEN id = ? THEN 0 WHEN lower(name) = lower(?) THEN 1 ELSE 2 END AS match_rank
    FROM {PROVINCES_TABLE}
    WHERE id = ? OR lower(name) = lower(?) OR lower(code) = lower(?)
    ORDER BY match_rank
    LIMIT 1
"""


def resolve(conn: duckdb.DuckDBPyConnection, ref: str) -> Province:
    """
    Resolve an id, name or code to a Province.

    Raises:
        NotFoundError: No province matches the reference.
    """
    ref = (ref or "").strip()
    if not ref:
        raise NotFoundError("Province reference is empty")
    row = fetch_one(conn, _RESOLVE_SQL, [ref, ref, ref, ref, ref])
    if row is None:
        raise NotFoundError(f"Province '{ref}' not found", details={"province": ref})
    row.pop("match_rank", None)
    return Province.from_db_row(row)


def get_province(conn: duckdb.DuckDBPyConnection, province_id: str) -> Province:
    row = fetch_one(conn, f"SELECT {_COLUMNS} FROM {PROVINCES_TABLE} WHERE id = ?", [province_id])
    if row is None:
        raise NotFoundError(
            f"Province id '{province_id}' not found", details={"province_id": province_id}
        )
    return Province.from_db_row(row)


def list_provinces(
    conn: duckdb.DuckDBPyConnection,
    with_geometry: bool | None = None,
) -> list[Province]:
    """
    List provinces ordered by name.

    Args:
        with_geometry: True for only provinces with geometry, False for only
                       provinces without, None for all.
    """
    sql = f"SELECT {_COLUMNS} FROM {PROVINCES_TABLE}"
    if with_geometry is True:
        sql += " WHERE geometry IS NOT NULL"
    elif with_geometry is False:
        sql += " WHERE geometry IS NULL"
    sql += " ORDER BY name"
    return [Province.from_db_row(r) for r in fetch_dicts(conn, sql)]


class ProvinceResolver:
    """
    Resolves row references with a per-call cache.

    Used by the loader so that a batch touching the same province many
    times resolves it once. Misses are not cached.
    """

    def __init__(self) -> None:
        self._cache: dict[str, Province] = {}

    def resolve(self, conn: duckdb.DuckDBPyConnection, ref: str) -> Province:
        key = ref.strip().lower()
        if key not in self._cache:
            self._cache[key] = resolve(conn, ref)
        return self._cache[key]

    def resolve_row(
        self,
        conn: duckdb.DuckDBPyConnection,
        province_id: str | None,
        province: str | None,
    ) -> Province:
        """
        Resolve a fact row's province_id / province pair.

        province_id is preferred. When both are given they must resolve to
        the same province.

        Raises:
            NotFoundError:   A reference matches no province.
            ValidationError: The two references disagree.
        """
        by_id = self.resolve(conn, province_id) if province_id else None
        by_ref = self.resolve(conn, province) if province else None
        if by_id and by_ref and by_id.id != by_ref.id:
            raise ValidationError(
                f"province_id '{province_id}' and province '{province}' "
                f"refer to different provinces ({by_id.name} vs {by_ref.name})",
                details={"province_id": province_id, "province": province},
            )
        resolved = by_id or by_ref
        if resolved is None:
            raise ValidationError("A province reference is required")
        return resolved


def seed_provinces(
    conn: duckdb.DuckDBPyConnection,
    seeds: Iterable[ProvinceSeed],
) -> tuple[int, int]:
    """
    Upsert provinces by name (case-insensitive).

    Existing provinces keep their id; code, geometry and metadata are
    refreshed. Run inside a unit_of_work.

    Returns:
        (created, updated)
    """
    created = updated = 0
    now = utcnow()
    for seed in seeds:
        values = seed.to_insert_dict()
        existing = fetch_one(
            conn,
            f"SELECT id FROM {PROVINCES_TABLE} WHERE lower(name) = lower(?)",
            [values["name"]],
        )
        if existing:
            conn.execute(
                f"UPDATE {PROVINCES_TABLE} "
                "SET code = ?, geometry = ?, metadata = ?, updated_at = ? WHERE id = ?",
                [values["code"], values["geometry"], values["metadata"], now, existing["id"]],
            )
            updated += 1
        else:
            conn.execute(
                f"INSERT INTO {PROVINCES_TABLE} (id, name, code, geometry, metadata, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    str(uuid.uuid4()),
                    values["name"],
                    values["code"],
                    values["geometry"],
                    values["metadata"],
                    now,
                ],
            )
            created += 1
    logger.info("provinces_seeded", created=created, updated=updated)
    return created, updated
