"""
models/province.py — Pydantic model for the provinces table.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Province(BaseModel):
    """Matches the provinces table row (geometry and metadata decoded)."""

    id: str
    name: str
    code: str | None = None
    geometry: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_geometry(self) -> bool:
        return self.geometry is not None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Province":
        data = dict(row)
        if isinstance(data.get("geometry"), str):
            data["geometry"] = json.loads(data["geometry"])
        if isinstance(data.get("metadata"), str):
            data["metadata"] = json.loads(data["metadata"])
        elif data.get("metadata") is None:
            data["metadata"] = {}
        return cls(**data)

    def identity(self) -> dict[str, Any]:
        """The id/name/code triple used in feature properties and edges."""
        return {"id": self.id, "name": self.name, "code": self.code}


class ProvinceSeed(BaseModel):
    """One province as read from a geometry source."""

    name: str = Field(min_length=1)
    code: str | None = None
    geometry: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "name": self.name.strip(),
            "code": self.code,
            "geometry": json.dumps(self.geometry) if self.geometry is not None else None,
            "metadata": json.dumps(self.metadata),
        }
