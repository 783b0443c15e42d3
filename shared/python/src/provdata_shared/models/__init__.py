"""
provdata_shared.models — Pydantic models for provinces, fact rows and map output.

These models are used by:
- packages/pipeline: validate incoming rows before the loader writes them
- packages/api: serialize query results into API responses
"""

from provdata_shared.models.connection import (
    Edge,
    NeighborSet,
    ProvinceRef,
    RankedProvince,
    TradeMargin,
)
from provdata_shared.models.facts import (
    ClimateRow,
    ClusteringRow,
    ConnectionRow,
    FactRow,
    FoodSecurityRow,
    GwprRow,
    NeighborSetRow,
    SupplyChainRow,
    TradeMarginRow,
)
from provdata_shared.models.maps import ConnectionsMap, Feature, FeatureCollection, MapFilters
from provdata_shared.models.principal import SYSTEM, Principal
from provdata_shared.models.province import Province, ProvinceSeed

__all__ = [
    "Province",
    "ProvinceSeed",
    "ProvinceRef",
    "Principal",
    "SYSTEM",
    "FactRow",
    "FoodSecurityRow",
    "SupplyChainRow",
    "ClimateRow",
    "ClusteringRow",
    "GwprRow",
    "ConnectionRow",
    "TradeMarginRow",
    "NeighborSetRow",
    "Edge",
    "RankedProvince",
    "TradeMargin",
    "NeighborSet",
    "Feature",
    "FeatureCollection",
    "ConnectionsMap",
    "MapFilters",
]
