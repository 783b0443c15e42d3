"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()    — resolves paths to tests/fixtures/
  geojson_payload() — parsed provinces FeatureCollection fixture

Database, principal and row fixtures come from the repository root conftest.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def geojson_payload() -> dict:
    """Parsed provinces FeatureCollection (duplicate and nameless features included)."""
    return json.loads((FIXTURES_DIR / "provinces_sample.geojson").read_text())
