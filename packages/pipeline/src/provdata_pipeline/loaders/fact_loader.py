"""
loaders/fact_loader.py — Bulk reconciliation engine for fact datasets.

Every write to a fact table or to the province graph tables
(province_connections, trade_margins, neighbor_sets) goes through this
module. The loader:
  - Validates each row against its dataset model
  - Resolves the province reference(s) to registry ids
  - Upserts by natural key: (province, year[, month]) for facts,
    (source, target, year) for connections, (source, target) for trade
    margins and (province) for neighbour sets
  - Recomputes cached derived columns on every write
  - Captures per-row failures and keeps going
  - Commits in chunks; a storage failure rolls back the current chunk and
    aborts the import with BulkImportAborted

Usage:
    from provdata_pipeline.loaders.fact_loader import FactLoader
    from provdata_shared.models.principal import Principal

    loader = FactLoader()
    result = loader.submit_bulk(
        "food-security",
        rows,
        Principal(name="ayu", role="field_officer"),
    )
    print(result.created, result.updated, result.failed)
"""

from __future__ import annotations

import json
import math
import time
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

import duckdb
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from provdata_shared.config import settings
from provdata_shared.constants import (
    CONNECTIONS,
    CONNECTIONS_TABLE,
    MPP,
    NEIGHBOR_SETS_TABLE,
    SAR,
    TRADE_MARGINS_TABLE,
)
from provdata_shared.datasets import DatasetSpec, get_dataset
from provdata_shared.db import fetch_dicts, fetch_one, unit_of_work, utcnow
from provdata_shared.errors import (
    ROW_ERRORS,
    BulkImportAborted,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    ProvDataError,
    ValidationError,
)
from provdata_shared.models.facts import ConnectionRow, FactRow, NeighborSetRow, TradeMarginRow
from provdata_shared.models.principal import Principal
from provdata_shared.models.province import Province
from provdata_shared.provinces import ProvinceResolver

log = structlog.get_logger(__name__)

Outcome = Literal["created", "updated"]
# (outcome, id of the written record)
Written = tuple[Outcome, str]
RowWriter = Callable[..., Written]


@dataclass
class BulkImportResult:
    """Summary of a bulk import. Never persisted."""

    dataset: str
    total_processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    chunks_total: int = 0
    chunks_committed: int = 0
    dry_run: bool = False
    duration_ms: int = 0

    @property
    def successful(self) -> int:
        return self.created + self.updated

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "success"
        if self.successful > 0:
            return "partial_failure"
        return "failure"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["successful"] = self.successful
        data["status"] = self.status
        return data


@dataclass
class _ChunkTally:
    created: int = 0
    updated: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def count(self, outcome: Outcome) -> None:
        if outcome == "created":
            self.created += 1
        else:
            self.updated += 1

    def fail(self, index: int, row: Any, exc: ProvDataError) -> None:
        self.errors.append({"index": index, "row": row, "error": exc.message, "code": exc.code})


class FactLoader:
    """
    Writes fact rows and province graph records on behalf of an authenticated principal.

    Args:
        conn:       Base DuckDB connection (defaults to the process singleton).
        chunk_size: Rows per transaction; None reads settings.bulk_chunk_size,
                    0 puts the whole batch in one transaction.
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection | None = None,
        *,
        chunk_size: int | None = None,
    ) -> None:
        self._conn = conn
        self._chunk_size = chunk_size

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    def submit_bulk(
        self,
        dataset: str,
        rows: list[Any],
        principal: Principal,
        *,
        dry_run: bool = False,
    ) -> BulkImportResult:
        """
        Reconcile a batch of rows into one dataset.

        Row-level failures (validation, unknown province, natural-key race)
        are recorded in the result with their 1-based index. Committed
        chunks stay committed if a later chunk aborts.

        Args:
            dataset:   Dataset selector ("food-security", …, "connections", "mpp", "sar").
            rows:      Raw row dicts.
            principal: Caller; must hold a write role.
            dry_run:   Run every step but roll back each chunk.

        Returns:
            BulkImportResult.

        Raises:
            AuthError / ForbiddenError: The principal may not write.
            ValidationError:            Unknown dataset or rows not a list.
            BulkImportAborted:          A storage failure aborted a chunk.
        """
        principal.require_write()
        writer = self._writer_for(dataset)
        if not isinstance(rows, list):
            raise ValidationError("rows must be a list of objects")

        chunk_size = self._resolve_chunk_size(len(rows))
        result = BulkImportResult(
            dataset=dataset,
            chunks_total=math.ceil(len(rows) / chunk_size) if rows else 0,
            dry_run=dry_run,
        )
        resolver = ProvinceResolver()
        t0 = time.monotonic()

        import_log = log.bind(dataset=dataset, total_rows=len(rows), user=principal.name)
        import_log.info("bulk_import_start", dry_run=dry_run, chunk_size=chunk_size)

        for chunk_idx in range(result.chunks_total):
            start = chunk_idx * chunk_size
            chunk = rows[start : start + chunk_size]
            tally = _ChunkTally()
            try:
                with unit_of_work(self._conn, rollback_only=dry_run) as cur:
                    for offset, raw in enumerate(chunk):
                        try:
                            outcome, _ = writer(cur, raw, principal, resolver)
                            tally.count(outcome)
                        except ROW_ERRORS as exc:
                            tally.fail(start + offset + 1, raw, exc)
            except InfrastructureError as exc:
                result.duration_ms = int((time.monotonic() - t0) * 1000)
                import_log.error(
                    "bulk_import_aborted",
                    chunk=chunk_idx + 1,
                    chunks_committed=result.chunks_committed,
                    error=exc.message,
                )
                raise BulkImportAborted(
                    f"Chunk {chunk_idx + 1}/{result.chunks_total} rolled back: {exc.message}",
                    committed=result,
                ) from exc

            result.created += tally.created
            result.updated += tally.updated
            result.failed += len(tally.errors)
            result.errors.extend(tally.errors)
            result.total_processed += len(chunk)
            result.chunks_committed += 1
            import_log.debug(
                "chunk_committed",
                chunk=chunk_idx + 1,
                n_chunks=result.chunks_total,
                created=tally.created,
                updated=tally.updated,
                failed=len(tally.errors),
            )

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        import_log.info(
            "bulk_import_complete",
            created=result.created,
            updated=result.updated,
            failed=result.failed,
            duration_ms=result.duration_ms,
            status=result.status,
        )
        return result

    # ------------------------------------------------------------------
    # Single-entity writes
    # ------------------------------------------------------------------

    def create_one(self, dataset: str, raw: Any, principal: Principal) -> dict[str, Any]:
        """
        Create one record; errors propagate instead of being tallied.

        Raises:
            ConflictError:   A record with the same natural key exists.
            NotFoundError:   The referenced province does not exist.
            ValidationError: The row is malformed.
        """
        principal.require_write()
        writer = self._writer_for(dataset)
        table, decode = _record_reader(dataset)
        with unit_of_work(self._conn) as cur:
            _, record_id = writer(cur, raw, principal, ProvinceResolver(), create_only=True)
            record = decode(fetch_one(cur, f"SELECT * FROM {table} WHERE id = ?", [record_id]))
        log.info("record_created", dataset=dataset, id=record_id, user=principal.name)
        return record

    def delete_connection(self, connection_id: str, principal: Principal) -> None:
        """Delete one connection by id. Raises NotFoundError if it does not exist."""
        principal.require_write()
        with unit_of_work(self._conn) as cur:
            deleted = fetch_dicts(
                cur,
                f"DELETE FROM {CONNECTIONS_TABLE} WHERE id = ? RETURNING id",
                [connection_id],
            )
            if not deleted:
                raise NotFoundError(
                    f"Connection '{connection_id}' not found",
                    details={"connection_id": connection_id},
                )
        log.info("connection_deleted", id=connection_id, user=principal.name)

    def reclassify(self, dataset: str, principal: Principal) -> int:
        """
        Recompute the cached derived columns of every row in a dataset.

        Returns:
            Number of rows whose cached values had drifted and were repaired.
        """
        principal.require_write()
        spec = get_dataset(dataset)
        if not spec.derived_columns:
            return 0

        drifted = 0
        with unit_of_work(self._conn) as cur:
            cols = ", ".join(["id", *spec.data_columns])
            for stored in fetch_dicts(cur, f"SELECT {cols} FROM {spec.table}"):
                derived = spec.compute_derived(stored)
                if all(stored[c] == v for c, v in derived.items()):
                    continue
                assignments = ", ".join(f"{c} = ?" for c in derived)
                cur.execute(
                    f"UPDATE {spec.table} SET {assignments} WHERE id = ?",
                    [*derived.values(), stored["id"]],
                )
                drifted += 1
        log.info("reclassify_complete", dataset=dataset, drifted=drifted)
        return drifted

    # ------------------------------------------------------------------
    # Row writers
    # ------------------------------------------------------------------

    def _writer_for(self, dataset: str) -> RowWriter:
        if dataset == CONNECTIONS:
            return _upsert_connection
        if dataset == MPP:
            return _upsert_trade_margin
        if dataset == SAR:
            return _upsert_neighbor_set
        spec = get_dataset(dataset)

        def write(cur, raw, principal, resolver, **kwargs):
            return _upsert_fact(cur, spec, raw, principal, resolver, **kwargs)

        return write

    def _resolve_chunk_size(self, n_rows: int) -> int:
        size = settings.bulk_chunk_size if self._chunk_size is None else self._chunk_size
        if size <= 0:
            return max(n_rows, 1)
        return size


# ---------------------------------------------------------------------------
# Fact rows
# ---------------------------------------------------------------------------


def _upsert_fact(
    cur: duckdb.DuckDBPyConnection,
    spec: DatasetSpec,
    raw: Any,
    principal: Principal,
    resolver: ProvinceResolver,
    *,
    create_only: bool = False,
) -> Written:
    row = _validate(spec.model, raw)
    province = resolver.resolve_row(cur, row.province_id, row.province)
    label = f"{spec.name} record for {province.name} {_describe_key(row)}"
    details = {"province_id": province.id, **row.natural_key()}
    existing = _find_fact(cur, spec, province, row)
    if existing is None:
        values = row.value_columns()
        record = {
            "province_id": province.id,
            "province_name": province.name,
            **row.natural_key(),
            **values,
            **spec.compute_derived(values),
        }
        return "created", _insert(cur, spec.table, record, principal, label, details)
    if create_only:
        raise ConflictError(f"{label} already exists", details=details)

    merged = {c: existing[c] for c in spec.value_columns}
    merged.update(row.value_columns(only_set=True))
    values = {**merged, **spec.compute_derived(merged)}
    _update(cur, spec.table, existing["id"], {**values, "province_name": province.name}, principal)
    return "updated", existing["id"]


def _find_fact(
    cur: duckdb.DuckDBPyConnection,
    spec: DatasetSpec,
    province: Province,
    row: FactRow,
) -> dict[str, Any] | None:
    key = {"province_id": province.id, **row.natural_key()}
    where = " AND ".join(f"{c} = ?" for c in key)
    return fetch_one(cur, f"SELECT * FROM {spec.table} WHERE {where}", list(key.values()))


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


def _upsert_connection(
    cur: duckdb.DuckDBPyConnection,
    raw: Any,
    principal: Principal,
    resolver: ProvinceResolver,
    *,
    create_only: bool = False,
) -> Written:
    row = _validate(ConnectionRow, raw)
    source, target = _resolve_endpoints(cur, row.source, row.target, resolver, "self-connection")
    label = f"Connection {source.name} -> {target.name} ({row.year})"
    details = {"source": source.id, "target": target.id, "year": row.year}
    names = {"source_province_name": source.name, "target_province_name": target.name}
    existing = _find_connection(cur, source.id, target.id, row.year)
    if existing is None:
        record = {
            "source_province_id": source.id,
            "target_province_id": target.id,
            **names,
            "year": row.year,
        }
        return "created", _insert(cur, CONNECTIONS_TABLE, record, principal, label, details)
    if create_only:
        raise ConflictError(f"{label} already exists", details=details)

    _update(cur, CONNECTIONS_TABLE, existing["id"], names, principal)
    return "updated", existing["id"]


def _find_connection(
    cur: duckdb.DuckDBPyConnection,
    source_id: str,
    target_id: str,
    year: int,
) -> dict[str, Any] | None:
    return fetch_one(
        cur,
        f"SELECT id FROM {CONNECTIONS_TABLE} "
        "WHERE source_province_id = ? AND target_province_id = ? AND year = ?",
        [source_id, target_id, year],
    )


# ---------------------------------------------------------------------------
# Trade margins (MPP)
# ---------------------------------------------------------------------------


def _upsert_trade_margin(
    cur: duckdb.DuckDBPyConnection,
    raw: Any,
    principal: Principal,
    resolver: ProvinceResolver,
    *,
    create_only: bool = False,
) -> Written:
    row = _validate(TradeMarginRow, raw)
    source, target = _resolve_endpoints(cur, row.source, row.target, resolver, "self-route")
    label = f"Trade margin {source.name} -> {target.name}"
    details = {"source": source.id, "target": target.id}
    values = {
        "source_province_name": source.name,
        "target_province_name": target.name,
        "distribution_costs": row.distribution_costs,
        "distribution_volume": row.distribution_volume,
    }
    existing = _find_trade_margin(cur, source.id, target.id)
    if existing is None:
        record = {"source_province_id": source.id, "target_province_id": target.id, **values}
        return "created", _insert(cur, TRADE_MARGINS_TABLE, record, principal, label, details)
    if create_only:
        raise ConflictError(f"{label} already exists", details=details)

    _update(cur, TRADE_MARGINS_TABLE, existing["id"], values, principal)
    return "updated", existing["id"]


def _find_trade_margin(
    cur: duckdb.DuckDBPyConnection,
    source_id: str,
    target_id: str,
) -> dict[str, Any] | None:
    return fetch_one(
        cur,
        f"SELECT id FROM {TRADE_MARGINS_TABLE} "
        "WHERE source_province_id = ? AND target_province_id = ?",
        [source_id, target_id],
    )


# ---------------------------------------------------------------------------
# Neighbour sets (SAR)
# ---------------------------------------------------------------------------


def _upsert_neighbor_set(
    cur: duckdb.DuckDBPyConnection,
    raw: Any,
    principal: Principal,
    resolver: ProvinceResolver,
    *,
    create_only: bool = False,
) -> Written:
    row = _validate(NeighborSetRow, raw)
    province = resolver.resolve(cur, row.province)
    neighbor_ids: list[str] = []
    for ref in row.neighbors:
        neighbor = resolver.resolve(cur, ref)
        if neighbor.id == province.id:
            raise ValidationError(
                f"self-neighbor: {province.name} cannot be listed among its own neighbors",
                details={"province": row.province, "neighbor": ref},
            )
        if neighbor.id not in neighbor_ids:
            neighbor_ids.append(neighbor.id)

    label = f"Neighbor set for {province.name}"
    details = {"province_id": province.id}
    values = {"province_name": province.name, "neighbor_ids": json.dumps(neighbor_ids)}
    existing = _find_neighbor_set(cur, province.id)
    if existing is None:
        record = {"province_id": province.id, **values}
        return "created", _insert(cur, NEIGHBOR_SETS_TABLE, record, principal, label, details)
    if create_only:
        raise ConflictError(f"{label} already exists", details=details)

    # The submitted list replaces the stored one
    _update(cur, NEIGHBOR_SETS_TABLE, existing["id"], values, principal)
    return "updated", existing["id"]


def _find_neighbor_set(
    cur: duckdb.DuckDBPyConnection,
    province_id: str,
) -> dict[str, Any] | None:
    return fetch_one(
        cur, f"SELECT id FROM {NEIGHBOR_SETS_TABLE} WHERE province_id = ?", [province_id]
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _insert(
    cur: duckdb.DuckDBPyConnection,
    table: str,
    values: dict[str, Any],
    principal: Principal,
    label: str,
    details: dict[str, Any],
) -> str:
    """Insert a new record; an empty RETURNING means the natural key lost a race."""
    record = {
        "id": str(uuid.uuid4()),
        **values,
        "created_by": principal.name,
        "user_role": principal.role,
        "created_at": utcnow(),
    }
    inserted = fetch_dicts(
        cur,
        f"INSERT INTO {table} ({', '.join(record)}) "
        f"VALUES ({', '.join('?' for _ in record)}) ON CONFLICT DO NOTHING RETURNING id",
        list(record.values()),
    )
    if not inserted:
        raise ConflictError(f"{label} was created concurrently", details=details)
    return inserted[0]["id"]


def _update(
    cur: duckdb.DuckDBPyConnection,
    table: str,
    record_id: str,
    values: dict[str, Any],
    principal: Principal,
) -> None:
    assignments = ", ".join(f"{c} = ?" for c in values)
    cur.execute(
        f"UPDATE {table} SET {assignments}, updated_by = ?, updated_at = ? WHERE id = ?",
        [*values.values(), principal.name, utcnow(), record_id],
    )


def _resolve_endpoints(
    cur: duckdb.DuckDBPyConnection,
    source_ref: str,
    target_ref: str,
    resolver: ProvinceResolver,
    self_edge: str,
) -> tuple[Province, Province]:
    source = resolver.resolve(cur, source_ref)
    target = resolver.resolve(cur, target_ref)
    if source.id == target.id:
        raise ValidationError(
            f"{self_edge}: {source.name} cannot be connected to itself",
            details={"source": source_ref, "target": target_ref},
        )
    return source, target


def _record_reader(dataset: str) -> tuple[str, Callable[[dict[str, Any]], dict[str, Any]]]:
    """Table holding a dataset's records and the decoder for a stored row."""
    if dataset == CONNECTIONS:
        return CONNECTIONS_TABLE, dict
    if dataset == MPP:
        return TRADE_MARGINS_TABLE, dict
    if dataset == SAR:
        return NEIGHBOR_SETS_TABLE, _decode_neighbor_set
    spec = get_dataset(dataset)
    return spec.table, spec.decode


def _decode_neighbor_set(row: dict[str, Any]) -> dict[str, Any]:
    return {**row, "neighbor_ids": json.loads(row["neighbor_ids"])}


def _validate(model: type[BaseModel], raw: Any) -> Any:
    """Validate a raw row, translating pydantic errors into ValidationError."""
    if not isinstance(raw, dict):
        raise ValidationError("Row must be an object")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        problems = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        ]
        message = "; ".join(f"{p['loc']}: {p['msg']}" if p["loc"] else p["msg"] for p in problems)
        raise ValidationError(message, details={"errors": problems}) from None


def _describe_key(row: FactRow) -> str:
    key = row.natural_key()
    if "month" in key:
        return f"{key['year']}-{key['month']:02d}"
    return str(key["year"])
