"""
models/maps.py — GeoJSON output shapes produced by the map composition engine.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from provdata_shared.constants import SupplyCondition
from provdata_shared.models.connection import Edge


class MapFilters(BaseModel):
    """Optional filters narrowing a map to a subset of fact rows."""

    category: int | None = Field(default=None, ge=1, le=6)
    condition: SupplyCondition | None = None
    cluster_id: int | None = Field(default=None, ge=-1)
    month: int | None = Field(default=None, ge=1, le=12)

    def active(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class Feature(BaseModel):
    type: Literal["Feature"] = "Feature"
    geometry: dict[str, Any]
    properties: dict[str, Any] = Field(default_factory=dict)


class FeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[Feature] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConnectionsMap(FeatureCollection):
    """Node features annotated with degree counts plus the directed edge list."""

    edges: list[Edge] = Field(default_factory=list)
