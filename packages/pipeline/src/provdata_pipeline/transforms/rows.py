"""
transforms/rows.py — Turn import files into the nested row dicts the loader expects.

Supported files:
  .json  — a list of row objects, or {"rows": [...]}
  .csv   — one row per line; nested fields use dotted column names, e.g.
           dependent_variable.food_security_index

Empty cells are dropped from the row so that a merge over an existing
record leaves the stored value untouched.

Usage:
    from provdata_pipeline.transforms.rows import read_rows

    rows = read_rows(Path("food_security_2024.csv"))
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import polars as pl

from provdata_shared.errors import ValidationError

# Columns holding JSON documents in CSV exports (lists and nested objects).
JSON_TEXT_COLUMNS: frozenset[str] = frozenset(
    {"cluster_summary", "significant_variables", "coefficients"}
)


def unflatten(flat: dict[str, Any], *, sep: str = ".") -> dict[str, Any]:
    """
    Nest dotted keys: {"a.b": 1, "c": 2} → {"a": {"b": 1}, "c": 2}.

    None values are dropped.
    """
    nested: dict[str, Any] = {}
    for key, value in flat.items():
        if value is None:
            continue
        parts = key.split(sep)
        target = nested
        for part in parts[:-1]:
            child = target.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValidationError(f"Column '{key}' conflicts with column '{part}'")
            target = child
        target[parts[-1]] = value
    return nested


def frame_to_rows(df: pl.DataFrame) -> list[dict[str, Any]]:
    """Convert a polars DataFrame with dotted column names into nested row dicts."""
    df = df.rename({c: c.strip() for c in df.columns})
    rows = []
    for record in df.to_dicts():
        for col in JSON_TEXT_COLUMNS.intersection(record):
            if isinstance(record[col], str) and record[col].strip():
                record[col] = _parse_json_cell(col, record[col])
        rows.append(unflatten(record))
    return rows


def read_rows(path: Path) -> list[Any]:
    """
    Read an import file into a list of rows.

    Raises:
        ValidationError: Unsupported extension or malformed content.
    """
    suffix = path.suffix.lower()
    if suffix == ".csv":
        try:
            df = pl.read_csv(path, infer_schema_length=10_000, null_values=[""])
        except pl.exceptions.PolarsError as exc:
            raise ValidationError(f"Could not parse CSV {path.name}: {exc}") from exc
        return frame_to_rows(df)
    if suffix == ".json":
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Could not parse JSON {path.name}: {exc}") from exc
        if isinstance(payload, dict) and "rows" in payload:
            payload = payload["rows"]
        if not isinstance(payload, list):
            raise ValidationError("JSON import file must hold a list of rows or {\"rows\": [...]}")
        return payload
    raise ValidationError(f"Unsupported import file type '{suffix}' (expected .csv or .json)")


def _parse_json_cell(col: str, text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # significant_variables may also be written as "a;b;c"
        if col == "significant_variables":
            return [v.strip() for v in text.split(";") if v.strip()]
        return text
