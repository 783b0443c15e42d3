"""
datasets.py — registry of the fact datasets.

Each fact dataset maps to one DuckDB table with a natural-key UNIQUE
constraint. The registry records everything the loader, the schema
builder and the map composer need to treat the datasets uniformly:
table name, row model, value columns with their SQL types, derived
(cached) columns and which map filters apply.

Usage:
    from provdata_shared.datasets import get_dataset

    spec = get_dataset("food-security")
    spec.table            # "food_security"
    spec.key_columns      # ("province_id", "year")
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from provdata_shared.classification import (
    cluster_label,
    food_security_category,
    supply_condition,
)
from provdata_shared.constants import (
    CLIMATE,
    CLUSTERING,
    FOOD_SECURITY,
    GWPR,
    SUPPLY_CHAIN,
)
from provdata_shared.errors import ValidationError
from provdata_shared.models.facts import (
    ClimateRow,
    ClusteringRow,
    FactRow,
    FoodSecurityRow,
    GwprRow,
    SupplyChainRow,
)


@dataclass(frozen=True)
class DatasetSpec:
    name: str
    table: str
    model: type[FactRow]
    # column name -> DuckDB type, in table order
    value_columns: dict[str, str]
    derived_columns: dict[str, str] = field(default_factory=dict)
    json_columns: tuple[str, ...] = ()
    derive: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    monthly: bool = False
    # map filter name -> column it constrains
    filters: dict[str, str] = field(default_factory=dict)

    @property
    def key_columns(self) -> tuple[str, ...]:
        if self.monthly:
            return ("province_id", "year", "month")
        return ("province_id", "year")

    @property
    def data_columns(self) -> tuple[str, ...]:
        """Value columns followed by derived columns."""
        return (*self.value_columns, *self.derived_columns)

    def compute_derived(self, values: dict[str, Any]) -> dict[str, Any]:
        """Recompute the cached derived columns from a full set of values."""
        if self.derive is None:
            return {}
        return self.derive(values)

    def decode(self, row: dict[str, Any]) -> dict[str, Any]:
        """Decode the JSON text columns of a stored row."""
        out = dict(row)
        for col in self.json_columns:
            if isinstance(out.get(col), str):
                out[col] = json.loads(out[col])
        return out


# ---------------------------------------------------------------------------
# Derived column functions
# ---------------------------------------------------------------------------


def _food_security_derived(values: dict[str, Any]) -> dict[str, Any]:
    category = food_security_category(values.get("food_security_index"))
    return {"category": category.category, "category_label": category.label}


def _supply_chain_derived(values: dict[str, Any]) -> dict[str, Any]:
    return {
        "condition": supply_condition(values.get("rice_production"), values.get("rice_consumption"))
    }


def _clustering_derived(values: dict[str, Any]) -> dict[str, Any]:
    cluster_id = values["cluster_id"]
    return {"is_outlier": cluster_id == -1, "cluster_label": cluster_label(cluster_id)}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_FOOD_SECURITY_FACTORS = (
    "rice_productivity",
    "poverty_rate",
    "rice_price",
    "food_expenditure_share",
    "stunting_prevalence",
    "hdi",
    "population_density",
    "life_expectancy",
    "households_without_electricity",
)

_CLIMATE_FACTORS = (
    "rainfall",
    "air_temperature",
    "solar_radiation",
    "humidity",
    "cloud_cover",
    "wind_speed",
    "surface_soil_moisture",
    "root_zone_moisture",
)

DATASETS: dict[str, DatasetSpec] = {
    FOOD_SECURITY: DatasetSpec(
        name=FOOD_SECURITY,
        table="food_security",
        model=FoodSecurityRow,
        value_columns={
            "food_security_index": "DOUBLE NOT NULL",
            **{col: "DOUBLE" for col in _FOOD_SECURITY_FACTORS},
        },
        derived_columns={"category": "INTEGER", "category_label": "VARCHAR"},
        derive=_food_security_derived,
        filters={"category": "category"},
    ),
    SUPPLY_CHAIN: DatasetSpec(
        name=SUPPLY_CHAIN,
        table="supply_chain",
        model=SupplyChainRow,
        value_columns={
            "trade_margin": "DOUBLE NOT NULL",
            "chain_count": "INTEGER NOT NULL",
            "rice_production": "DOUBLE NOT NULL",
            "rice_consumption": "DOUBLE NOT NULL",
        },
        derived_columns={"condition": "VARCHAR"},
        derive=_supply_chain_derived,
        filters={"condition": "condition"},
    ),
    CLIMATE: DatasetSpec(
        name=CLIMATE,
        table="climate",
        model=ClimateRow,
        value_columns={
            "rice_production": "DOUBLE NOT NULL",
            **{col: "DOUBLE NOT NULL" for col in _CLIMATE_FACTORS},
        },
        monthly=True,
        filters={"month": "month"},
    ),
    CLUSTERING: DatasetSpec(
        name=CLUSTERING,
        table="clustering",
        model=ClusteringRow,
        value_columns={
            "cluster_id": "INTEGER NOT NULL",
            "cluster_group": "VARCHAR NOT NULL",
            "cluster_summary": "VARCHAR NOT NULL",
        },
        derived_columns={"is_outlier": "BOOLEAN", "cluster_label": "VARCHAR"},
        json_columns=("cluster_summary",),
        derive=_clustering_derived,
        filters={"cluster_id": "cluster_id"},
    ),
    GWPR: DatasetSpec(
        name=GWPR,
        table="gwpr",
        model=GwprRow,
        value_columns={
            "group_id": "INTEGER NOT NULL",
            "significant_variables": "VARCHAR NOT NULL",
            "coefficients": "VARCHAR",
            "r_squared": "DOUBLE",
            "adjusted_r_squared": "DOUBLE",
            "bandwidth": "DOUBLE",
        },
        json_columns=("significant_variables", "coefficients"),
    ),
}


def get_dataset(name: str) -> DatasetSpec:
    """Return the registry entry for a fact dataset or raise ValidationError."""
    try:
        return DATASETS[name]
    except KeyError:
        known = ", ".join(DATASETS)
        raise ValidationError(
            f"Unknown fact dataset '{name}'. Expected one of: {known}",
            details={"dataset": name},
        ) from None
