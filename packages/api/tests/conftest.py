"""Shared test fixtures for provdata-api."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient
from jose import jwt as jose_jwt

from provdata_pipeline.loaders.fact_loader import FactLoader
from provdata_shared.config import settings
from provdata_shared.models.principal import SYSTEM


def make_token(
    subject: str | None = "ayu", role: str | None = "field_officer", **claims: Any
) -> str:
    """Sign an HS256 token the way the auth provider does."""
    payload: dict[str, Any] = {"aud": settings.jwt_audience, **claims}
    if subject is not None:
        payload["sub"] = subject
    if role is not None:
        payload["role"] = role
    return jose_jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear the in-memory province cache between tests."""
    from provdata_api.utils.cache import province_cache

    province_cache.clear()
    yield
    province_cache.clear()


@pytest.fixture()
def app(duck):
    """FastAPI app bound to the test DuckDB (schema already created)."""
    from provdata_api.app import create_app

    return create_app(init_db=False)


@pytest.fixture()
def client(app):
    """HTTP test client."""
    return TestClient(app)


@pytest.fixture()
def token_factory():
    return make_token


@pytest.fixture()
def writer_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token('ayu', 'field_officer')}"}


@pytest.fixture()
def reader_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token('budi', 'public')}"}


@pytest.fixture()
def seeded(provinces, make_row):
    """
    A small, fixed data set:

      food-security  2023: Aceh            2024: Aceh (cat 3), Jawa Barat (cat 5), Papua
      supply-chain   2024: Aceh (surplus), Jawa Tengah (deficit)
      climate        2024-01: Aceh
      clustering     2024: Aceh (cluster 1), Jawa Barat (outlier)
      connections    2024: Aceh->Jawa Barat, Jawa Barat->Aceh, Aceh->Jawa Tengah, Papua->Aceh
                     2023: Jawa Barat->Jawa Tengah
    """
    loader = FactLoader()
    batches = {
        "food-security": [
            make_row.food_security("Aceh", 2023, 49.0),
            make_row.food_security("Aceh", 2024, 52.3),
            make_row.food_security("Jawa Barat", 2024, 71.0),
            make_row.food_security("Papua", 2024, 30.5),
        ],
        "supply-chain": [
            make_row.supply_chain("Aceh", 2024, 120.0, 100.0),
            make_row.supply_chain("Jawa Tengah", 2024, 80.0, 95.0),
        ],
        "climate": [make_row.climate("Aceh", 2024, 1)],
        "clustering": [
            make_row.clustering("Aceh", 2024, 1),
            make_row.clustering("Jawa Barat", 2024, -1),
        ],
        "connections": [
            make_row.connection("Aceh", "Jawa Barat", 2024),
            make_row.connection("Jawa Barat", "Aceh", 2024),
            make_row.connection("Aceh", "Jawa Tengah", 2024),
            make_row.connection("Papua", "Aceh", 2024),
            make_row.connection("Jawa Barat", "Jawa Tengah", 2023),
        ],
    }
    for dataset, rows in batches.items():
        result = loader.submit_bulk(dataset, rows, SYSTEM)
        assert result.failed == 0, result.errors
    return provinces
