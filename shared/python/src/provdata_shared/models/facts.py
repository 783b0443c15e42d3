"""
models/facts.py — Pydantic models for incoming fact rows, one per dataset.

These models perform the structural validation step of the reconciliation
engine: required fields, numeric ranges and enum membership. Each model
flattens itself into the value columns of its table via value_columns().

A row references its province with `province_id` (an id) and/or `province`
(an id, a name or a code). At least one must be present.
"""

from __future__ import annotations

import json
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from provdata_shared.config import settings
from provdata_shared.constants import ClusterStatus, GwprVariable


def _clean_ref(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(int(value))
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class FactRow(BaseModel):
    """Common shape of every fact row: a province reference plus a year."""

    model_config = ConfigDict(extra="ignore")

    # Scalar value fields, and nested sub-models whose fields become columns.
    value_fields: ClassVar[tuple[str, ...]] = ()
    value_groups: ClassVar[tuple[str, ...]] = ()
    json_fields: ClassVar[tuple[str, ...]] = ()
    monthly: ClassVar[bool] = False

    province_id: str | None = None
    province: str | None = None
    year: int = Field(ge=settings.year_min, le=settings.year_max)

    @field_validator("province_id", "province", mode="before")
    @classmethod
    def _strip_ref(cls, v: Any) -> Any:
        return _clean_ref(v)

    @model_validator(mode="after")
    def _require_province(self) -> "FactRow":
        if not self.province_id and not self.province:
            raise ValueError("a province reference (province_id or province) is required")
        return self

    def natural_key(self) -> dict[str, int]:
        """Year (and month) part of the natural key; the province part is resolved."""
        key = {"year": self.year}
        if self.monthly:
            key["month"] = getattr(self, "month")
        return key

    def value_columns(self, *, only_set: bool = False) -> dict[str, Any]:
        """
        Flatten the dataset values into column → value.

        Args:
            only_set: Only include fields present in the input row (used to
                      merge an update over the stored record).
        """
        dump = self.model_dump(
            include={*self.value_fields, *self.value_groups},
            exclude_unset=only_set,
        )
        columns: dict[str, Any] = {}
        for name, value in dump.items():
            if name in self.value_groups:
                columns.update(value)
            elif name in self.json_fields and value is not None:
                columns[name] = json.dumps(value)
            else:
                columns[name] = value
        return columns


# ---------------------------------------------------------------------------
# Food security
# ---------------------------------------------------------------------------


class FoodSecurityIndex(BaseModel):
    food_security_index: float = Field(ge=0, le=100)


class FoodSecurityFactors(BaseModel):
    rice_productivity: float | None = Field(default=None, description="Quintal per hectare")
    poverty_rate: float | None = Field(default=None, ge=0, le=100)
    rice_price: float | None = Field(default=None, ge=0, description="Per kilogram")
    food_expenditure_share: float | None = Field(default=None, ge=0, le=100)
    stunting_prevalence: float | None = Field(default=None, ge=0, le=100)
    hdi: float | None = Field(default=None, ge=0, le=100)
    population_density: float | None = Field(default=None, ge=0)
    life_expectancy: float | None = Field(default=None, ge=0)
    households_without_electricity: float | None = Field(default=None, ge=0, le=100)


class FoodSecurityRow(FactRow):
    value_groups: ClassVar[tuple[str, ...]] = ("dependent_variable", "independent_variables")

    dependent_variable: FoodSecurityIndex
    independent_variables: FoodSecurityFactors = Field(default_factory=FoodSecurityFactors)


# ---------------------------------------------------------------------------
# Supply chain
# ---------------------------------------------------------------------------


class SupplyChainRow(FactRow):
    value_fields: ClassVar[tuple[str, ...]] = (
        "trade_margin",
        "chain_count",
        "rice_production",
        "rice_consumption",
    )

    trade_margin: float = Field(description="Trade and transport margin (%)")
    chain_count: int = Field(ge=0)
    rice_production: float = Field(ge=0, description="Thousand tonnes")
    rice_consumption: float = Field(ge=0, description="Thousand tonnes")


# ---------------------------------------------------------------------------
# Climate (monthly)
# ---------------------------------------------------------------------------


class ClimateYield(BaseModel):
    rice_production: float = Field(ge=0, description="Thousand tonnes")


class ClimateFactors(BaseModel):
    rainfall: float = Field(ge=0, description="mm")
    air_temperature: float = Field(ge=-50, le=60, description="°C at 2 m")
    solar_radiation: float = Field(ge=0, description="MJ/m2")
    humidity: float = Field(ge=0, le=100, description="% at 2 m")
    cloud_cover: float = Field(ge=0, le=100, description="%")
    wind_speed: float = Field(ge=0, description="m/s at 2 m")
    surface_soil_moisture: float = Field(ge=0, description="kg/m2")
    root_zone_moisture: float = Field(ge=0, description="kg/m2")


class ClimateRow(FactRow):
    value_groups: ClassVar[tuple[str, ...]] = ("dependent_variable", "independent_variables")
    monthly: ClassVar[bool] = True

    month: int = Field(ge=1, le=12)
    dependent_variable: ClimateYield
    independent_variables: ClimateFactors


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------


class ClusterDimension(BaseModel):
    status: ClusterStatus
    mean_standard_score: float


class ClusterSummary(BaseModel):
    overall: ClusterDimension
    availability: ClusterDimension
    accessibility: ClusterDimension
    utilization: ClusterDimension
    stability: ClusterDimension


class ClusteringRow(FactRow):
    value_fields: ClassVar[tuple[str, ...]] = ("cluster_id", "cluster_group", "cluster_summary")
    json_fields: ClassVar[tuple[str, ...]] = ("cluster_summary",)

    cluster_id: int = Field(ge=-1, description="-1 marks an outlier")
    cluster_group: str = Field(min_length=1)
    cluster_summary: ClusterSummary


# ---------------------------------------------------------------------------
# GWPR (spatial regression configuration)
# ---------------------------------------------------------------------------


class GwprRow(FactRow):
    value_fields: ClassVar[tuple[str, ...]] = (
        "group_id",
        "significant_variables",
        "coefficients",
        "r_squared",
        "adjusted_r_squared",
        "bandwidth",
    )
    json_fields: ClassVar[tuple[str, ...]] = ("significant_variables", "coefficients")

    group_id: int = Field(ge=1, validation_alias=AliasChoices("group_id", "group"))
    significant_variables: list[GwprVariable] = Field(min_length=1)
    coefficients: dict[GwprVariable, float] | None = None
    r_squared: float | None = Field(default=None, ge=0, le=1)
    adjusted_r_squared: float | None = Field(default=None, ge=0, le=1)
    bandwidth: float | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


class ConnectionRow(BaseModel):
    """A directed trade connection between two provinces for one year."""

    model_config = ConfigDict(extra="ignore")

    source: str = Field(
        validation_alias=AliasChoices("source", "source_province_id", "source_province")
    )
    target: str = Field(
        validation_alias=AliasChoices("target", "target_province_id", "target_province")
    )
    year: int = Field(ge=settings.year_min, le=settings.year_max)

    @field_validator("source", "target", mode="before")
    @classmethod
    def _strip_ref(cls, v: Any) -> Any:
        return _clean_ref(v)


# ---------------------------------------------------------------------------
# Trade margins (MPP) and neighbour sets (SAR)
# ---------------------------------------------------------------------------


class TradeMarginRow(BaseModel):
    """Distribution cost and volume on one source -> target route (not per year)."""

    model_config = ConfigDict(extra="ignore")

    source: str = Field(
        validation_alias=AliasChoices("source", "source_province_id", "source_province")
    )
    target: str = Field(
        validation_alias=AliasChoices("target", "target_province_id", "target_province")
    )
    distribution_costs: float = Field(ge=0)
    distribution_volume: float = Field(ge=0)

    @field_validator("source", "target", mode="before")
    @classmethod
    def _strip_ref(cls, v: Any) -> Any:
        return _clean_ref(v)


class NeighborSetRow(BaseModel):
    """A province and the provinces it borders. One set per province."""

    model_config = ConfigDict(extra="ignore")

    province: str = Field(
        validation_alias=AliasChoices("province", "main_province_id", "main_province")
    )
    neighbors: list[str] = Field(
        min_length=1,
        validation_alias=AliasChoices("neighbors", "neighbor_province_ids", "neighbor_provinces"),
    )

    @field_validator("province", mode="before")
    @classmethod
    def _strip_ref(cls, v: Any) -> Any:
        return _clean_ref(v)

    @field_validator("neighbors", mode="before")
    @classmethod
    def _strip_refs(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.split(";")
        if isinstance(v, list):
            return [ref for ref in (_clean_ref(r) for r in v) if ref is not None]
        return v
