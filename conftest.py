"""
conftest.py — fixtures shared by the shared, pipeline and api test suites.

Provides:
  duck          — fresh in-memory DuckDB with the schema created
  provinces     — four seeded provinces (Papua has no geometry)
  writer/reader — principals with and without a write role
  make_row      — builders for valid raw rows of every dataset
"""

from __future__ import annotations

from typing import Any

import duckdb
import pytest

from provdata_shared.config import settings
from provdata_shared.db import (
    get_duckdb_connection,
    init_schema,
    reset_duckdb_connection,
    unit_of_work,
)
from provdata_shared.models.principal import Principal
from provdata_shared.models.province import Province, ProvinceSeed
from provdata_shared.provinces import list_provinces, seed_provinces


def square(x: float, y: float) -> dict[str, Any]:
    return {
        "type": "Polygon",
        "coordinates": [[[x, y], [x + 1, y], [x + 1, y + 1], [x, y + 1], [x, y]]],
    }


PROVINCE_SEEDS = [
    ProvinceSeed(name="Aceh", code="11", geometry=square(95, 4)),
    ProvinceSeed(name="Jawa Barat", code="32", geometry=square(106, -7)),
    ProvinceSeed(name="Jawa Tengah", code="33", geometry=square(109, -7)),
    ProvinceSeed(name="Papua", code="91", geometry=None),
]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def duck(monkeypatch: pytest.MonkeyPatch) -> duckdb.DuckDBPyConnection:
    """Point settings at a private in-memory database and create the schema."""
    monkeypatch.setattr(settings, "duckdb_path", ":memory:")
    reset_duckdb_connection()
    conn = get_duckdb_connection()
    init_schema(conn)
    yield conn
    reset_duckdb_connection()


@pytest.fixture
def provinces(duck: duckdb.DuckDBPyConnection) -> dict[str, Province]:
    """Seed the test provinces; returns {name: Province}."""
    with unit_of_work(duck) as cur:
        seed_provinces(cur, PROVINCE_SEEDS)
    return {p.name: p for p in list_provinces(duck)}


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------

@pytest.fixture
def writer() -> Principal:
    return Principal(name="ayu", role="field_officer")


@pytest.fixture
def reader() -> Principal:
    return Principal(name="budi", role="public")


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------

class RowBuilder:
    """Valid raw rows (as an API client or import file would send them)."""

    @staticmethod
    def food_security(province: str, year: int, index: float, **factors: Any) -> dict[str, Any]:
        row: dict[str, Any] = {
            "province": province,
            "year": year,
            "dependent_variable": {"food_security_index": index},
        }
        if factors:
            row["independent_variables"] = factors
        return row

    @staticmethod
    def supply_chain(
        province: str,
        year: int,
        production: float = 120.0,
        consumption: float = 100.0,
    ) -> dict[str, Any]:
        return {
            "province": province,
            "year": year,
            "trade_margin": 12.5,
            "chain_count": 3,
            "rice_production": production,
            "rice_consumption": consumption,
        }

    @staticmethod
    def climate(province: str, year: int, month: int, production: float = 80.0) -> dict[str, Any]:
        return {
            "province": province,
            "year": year,
            "month": month,
            "dependent_variable": {"rice_production": production},
            "independent_variables": {
                "rainfall": 210.0,
                "air_temperature": 27.1,
                "solar_radiation": 18.2,
                "humidity": 81.0,
                "cloud_cover": 64.0,
                "wind_speed": 2.3,
                "surface_soil_moisture": 31.0,
                "root_zone_moisture": 120.0,
            },
        }

    @staticmethod
    def clustering(province: str, year: int, cluster_id: int = 1) -> dict[str, Any]:
        dimension = {"status": "moderate", "mean_standard_score": 0.12}
        return {
            "province": province,
            "year": year,
            "cluster_id": cluster_id,
            "cluster_group": "B",
            "cluster_summary": {
                "overall": dimension,
                "availability": {"status": "good", "mean_standard_score": 0.8},
                "accessibility": dimension,
                "utilization": dimension,
                "stability": {"status": "poor", "mean_standard_score": -1.1},
            },
        }

    @staticmethod
    def gwpr(
        province: str,
        year: int,
        group_id: int = 1,
        gini: float = -0.42,
    ) -> dict[str, Any]:
        return {
            "province": province,
            "year": year,
            "group_id": group_id,
            "significant_variables": ["gini_coefficient", "road_infrastructure"],
            "coefficients": {"gini_coefficient": gini, "road_infrastructure": 0.17},
            "r_squared": 0.71,
        }

    @staticmethod
    def connection(source: str, target: str, year: int) -> dict[str, Any]:
        return {"source": source, "target": target, "year": year}

    @staticmethod
    def trade_margin(
        source: str,
        target: str,
        costs: float = 1250.0,
        volume: float = 40.0,
    ) -> dict[str, Any]:
        return {
            "source": source,
            "target": target,
            "distribution_costs": costs,
            "distribution_volume": volume,
        }

    @staticmethod
    def neighbor_set(province: str, neighbors: list[str]) -> dict[str, Any]:
        return {"province": province, "neighbors": neighbors}


@pytest.fixture
def make_row() -> type[RowBuilder]:
    return RowBuilder
