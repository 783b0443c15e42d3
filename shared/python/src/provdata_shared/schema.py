"""
schema.py — DuckDB DDL for the provinces, fact and province graph tables.

Natural keys are enforced with UNIQUE constraints; the loader relies on
them (INSERT … ON CONFLICT DO NOTHING RETURNING id) to detect a create
that lost a race. JSON payloads are stored as VARCHAR text.
"""

from __future__ import annotations

from provdata_shared.constants import (
    CONNECTIONS_TABLE,
    NEIGHBOR_SETS_TABLE,
    PROVINCES_TABLE,
    TRADE_MARGINS_TABLE,
)
from provdata_shared.datasets import DATASETS, DatasetSpec

_AUDIT_DDL = """
    created_by      VARCHAR,
    user_role       VARCHAR,
    created_at      TIMESTAMP NOT NULL DEFAULT current_timestamp,
    updated_by      VARCHAR,
    updated_at      TIMESTAMP"""


def _provinces_ddl() -> str:
    return f"""
CREATE TABLE IF NOT EXISTS {PROVINCES_TABLE} (
    id          VARCHAR PRIMARY KEY,
    name        VARCHAR NOT NULL UNIQUE,
    code        VARCHAR,
    geometry    VARCHAR,
    metadata    VARCHAR,
    created_at  TIMESTAMP NOT NULL DEFAULT current_timestamp,
    updated_at  TIMESTAMP
)"""


def _fact_table_ddl(spec: DatasetSpec) -> str:
    month = ""
    if spec.monthly:
        month = "\n    month           INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),"
    columns = "".join(
        f"\n    {name} {sql_type},"
        for name, sql_type in {**spec.value_columns, **spec.derived_columns}.items()
    )
    return f"""
CREATE TABLE IF NOT EXISTS {spec.table} (
    id              VARCHAR PRIMARY KEY,
    province_id     VARCHAR NOT NULL,
    province_name   VARCHAR NOT NULL,
    year            INTEGER NOT NULL,{month}{columns}{_AUDIT_DDL},
    UNIQUE ({", ".join(spec.key_columns)})
)"""


def _connections_ddl() -> str:
    return f"""
CREATE TABLE IF NOT EXISTS {CONNECTIONS_TABLE} (
    id                    VARCHAR PRIMARY KEY,
    source_province_id    VARCHAR NOT NULL,
    target_province_id    VARCHAR NOT NULL,
    source_province_name  VARCHAR NOT NULL,
    target_province_name  VARCHAR NOT NULL,
    year                  INTEGER NOT NULL,{_AUDIT_DDL},
    UNIQUE (source_province_id, target_province_id, year),
    CHECK (source_province_id <> target_province_id)
)"""


def _trade_margins_ddl() -> str:
    return f"""
CREATE TABLE IF NOT EXISTS {TRADE_MARGINS_TABLE} (
    id                    VARCHAR PRIMARY KEY,
    source_province_id    VARCHAR NOT NULL,
    target_province_id    VARCHAR NOT NULL,
    source_province_name  VARCHAR NOT NULL,
    target_province_name  VARCHAR NOT NULL,
    distribution_costs    DOUBLE NOT NULL CHECK (distribution_costs >= 0),
    distribution_volume   DOUBLE NOT NULL CHECK (distribution_volume >= 0),{_AUDIT_DDL},
    UNIQUE (source_province_id, target_province_id),
    CHECK (source_province_id <> target_province_id)
)"""


def _neighbor_sets_ddl() -> str:
    # neighbor_ids: JSON array of province ids, never containing province_id
    return f"""
CREATE TABLE IF NOT EXISTS {NEIGHBOR_SETS_TABLE} (
    id              VARCHAR PRIMARY KEY,
    province_id     VARCHAR NOT NULL UNIQUE,
    province_name   VARCHAR NOT NULL,
    neighbor_ids    VARCHAR NOT NULL,{_AUDIT_DDL}
)"""


def schema_statements() -> list[str]:
    """Return every CREATE statement, provinces first."""
    statements = [_provinces_ddl()]
    statements.extend(_fact_table_ddl(spec) for spec in DATASETS.values())
    statements.extend([_connections_ddl(), _trade_margins_ddl(), _neighbor_sets_ddl()])
    return statements


def all_tables() -> list[str]:
    return [
        PROVINCES_TABLE,
        *(spec.table for spec in DATASETS.values()),
        CONNECTIONS_TABLE,
        TRADE_MARGINS_TABLE,
        NEIGHBOR_SETS_TABLE,
    ]
