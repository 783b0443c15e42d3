"""
constants.py — shared constants used across the pipeline and API.

Dataset selectors, table names and enum members are defined here so they
stay in sync between the Python packages.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Dataset selectors
# ---------------------------------------------------------------------------
FactDatasetName = Literal["food-security", "supply-chain", "climate", "clustering", "gwpr"]
DatasetName = Literal[
    "food-security", "supply-chain", "climate", "clustering", "gwpr", "connections", "mpp", "sar"
]
MapSelector = Literal[
    "food-security", "supply-chain", "climate", "clustering", "gwpr", "connections", "combined"
]

FOOD_SECURITY: Final = "food-security"
SUPPLY_CHAIN: Final = "supply-chain"
CLIMATE: Final = "climate"
CLUSTERING: Final = "clustering"
GWPR: Final = "gwpr"
CONNECTIONS: Final = "connections"
# Trade and transport margin (Margin Perdagangan dan Pengangkutan) per route
MPP: Final = "mpp"
# Regional neighbour sets (SAR) per province
SAR: Final = "sar"
COMBINED: Final = "combined"

ALL_DATASETS: Final[tuple[str, ...]] = (
    FOOD_SECURITY,
    SUPPLY_CHAIN,
    CLIMATE,
    CLUSTERING,
    GWPR,
    CONNECTIONS,
    MPP,
    SAR,
)

# Pair joined by the "combined" map mode.
COMBINED_DEFAULT: Final[tuple[str, str]] = (FOOD_SECURITY, SUPPLY_CHAIN)

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
PROVINCES_TABLE: Final = "provinces"
CONNECTIONS_TABLE: Final = "province_connections"
TRADE_MARGINS_TABLE: Final = "trade_margins"
NEIGHBOR_SETS_TABLE: Final = "neighbor_sets"

# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------
SYSTEM_PRINCIPAL_NAME: Final = "system"

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
SupplyCondition = Literal["surplus", "deficit", "balanced"]

ClusterStatus = Literal["good", "moderate", "low", "poor"]

GwprVariable = Literal[
    "domestic_trade_share",
    "implicit_price_index",
    "gini_coefficient",
    "human_development_index",
    "population_density",
    "road_infrastructure",
    "construction_cost_index",
    "democracy_index",
]

ConnectionDirection = Literal["out", "in", "both"]
