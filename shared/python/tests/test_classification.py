"""
tests/test_classification.py — derived classification functions and the
dataset registry's derived columns.
"""

from __future__ import annotations

import math

import pytest

from provdata_shared.classification import (
    cluster_label,
    food_security_category,
    supply_condition,
)
from provdata_shared.datasets import DATASETS, get_dataset
from provdata_shared.errors import ValidationError


class TestFoodSecurityCategory:
    @pytest.mark.parametrize(
        "index, category, label",
        [
            (0.0, 1, "Very vulnerable"),
            (37.61, 1, "Very vulnerable"),
            (37.62, 2, "Vulnerable"),
            (48.27, 2, "Vulnerable"),
            (57.11, 3, "Somewhat vulnerable"),
            (60.0, 4, "Somewhat resilient"),
            (74.40, 5, "Resilient"),
            (74.41, 6, "Very resilient"),
            (100.0, 6, "Very resilient"),
        ],
    )
    def test_band_boundaries(self, index: float, category: int, label: str):
        result = food_security_category(index)
        assert result.category == category
        assert result.label == label

    @pytest.mark.parametrize("index", [None, math.nan])
    def test_missing_index_is_invalid(self, index):
        result = food_security_category(index)
        assert result.category is None
        assert result.label == "Invalid"


class TestSupplyCondition:
    def test_surplus(self):
        assert supply_condition(120.0, 100.0) == "surplus"

    def test_deficit(self):
        assert supply_condition(80.0, 100.0) == "deficit"

    def test_balanced(self):
        assert supply_condition(100.0, 100.0) == "balanced"

    def test_missing_values_count_as_zero(self):
        assert supply_condition(None, 5.0) == "deficit"
        assert supply_condition(None, None) == "balanced"


def test_cluster_label():
    assert cluster_label(-1) == "Outlier"
    assert cluster_label(3) == "Cluster 3"


class TestDatasetRegistry:
    def test_monthly_dataset_key_includes_month(self):
        assert get_dataset("climate").key_columns == ("province_id", "year", "month")
        assert get_dataset("gwpr").key_columns == ("province_id", "year")

    def test_unknown_dataset_raises(self):
        with pytest.raises(ValidationError, match="Unknown fact dataset"):
            get_dataset("rainfall")

    def test_food_security_derived_columns(self):
        derived = get_dataset("food-security").compute_derived({"food_security_index": 50.0})
        assert derived == {"category": 3, "category_label": "Somewhat vulnerable"}

    def test_clustering_derived_columns(self):
        derived = get_dataset("clustering").compute_derived({"cluster_id": -1})
        assert derived == {"is_outlier": True, "cluster_label": "Outlier"}

    def test_datasets_without_derivation(self):
        assert get_dataset("climate").compute_derived({"rice_production": 1.0}) == {}

    def test_filters_point_at_real_columns(self):
        for spec in DATASETS.values():
            columns = {*spec.data_columns, *spec.key_columns}
            assert set(spec.filters.values()) <= columns
