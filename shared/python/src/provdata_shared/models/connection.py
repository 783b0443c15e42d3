"""
models/connection.py — Pydantic models for the province graph tables and the
query results built from them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ProvinceRef(BaseModel):
    id: str
    name: str
    code: str | None = None


class Edge(BaseModel):
    """One directed connection, with both endpoints resolved to the registry."""

    id: str
    source: ProvinceRef
    target: ProvinceRef
    year: int
    created_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Edge":
        return cls(
            id=row["id"],
            source=ProvinceRef(
                id=row["source_province_id"],
                name=row["source_name"],
                code=row.get("source_code"),
            ),
            target=ProvinceRef(
                id=row["target_province_id"],
                name=row["target_name"],
                code=row.get("target_code"),
            ),
            year=row["year"],
            created_at=row.get("created_at"),
        )


class RankedProvince(BaseModel):
    """A province ranked by its connection degree."""

    rank: int
    province: ProvinceRef
    outgoing: int
    incoming: int
    total: int


class TradeMargin(BaseModel):
    """Distribution cost and volume on one route."""

    id: str
    source: ProvinceRef
    target: ProvinceRef
    distribution_costs: float
    distribution_volume: float

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "TradeMargin":
        return cls(
            id=row["id"],
            source=ProvinceRef(
                id=row["source_province_id"],
                name=row["source_name"],
                code=row.get("source_code"),
            ),
            target=ProvinceRef(
                id=row["target_province_id"],
                name=row["target_name"],
                code=row.get("target_code"),
            ),
            distribution_costs=row["distribution_costs"],
            distribution_volume=row["distribution_volume"],
        )


class NeighborSet(BaseModel):
    id: str
    province: ProvinceRef
    neighbors: list[ProvinceRef]
