"""
classification.py — derived classifications computed from fact values.

All functions are pure and stateless. The loader caches their output on
the fact rows (category, condition, cluster label) for query performance;
`reclassify` in the loader recomputes and repairs any drift.

Usage:
    from provdata_shared.classification import food_security_category

    food_security_category(71.2)   # FoodSecurityCategory(category=5, label="Resilient", …)
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any

# Upper bound (inclusive) of each food security band, in category order.
FOOD_SECURITY_BANDS: tuple[tuple[float, str], ...] = (
    (37.61, "Very vulnerable"),
    (48.27, "Vulnerable"),
    (57.11, "Somewhat vulnerable"),
    (65.96, "Somewhat resilient"),
    (74.40, "Resilient"),
    (math.inf, "Very resilient"),
)


@dataclass(frozen=True)
class FoodSecurityCategory:
    category: int | None
    label: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def food_security_category(index: float | None) -> FoodSecurityCategory:
    """
    Band a food security index (0–100) into priority categories 1–6.

    Category 1 is the most vulnerable. A missing or NaN index yields
    category None with the label "Invalid".
    """
    if index is None or (isinstance(index, float) and math.isnan(index)):
        return FoodSecurityCategory(None, "Invalid", "Invalid index")
    for category, (upper, label) in enumerate(FOOD_SECURITY_BANDS, start=1):
        if index <= upper:
            return FoodSecurityCategory(category, label, f"Priority {category} ({label})")
    raise AssertionError("unreachable: last band is unbounded")


def supply_condition(production: float | None, consumption: float | None) -> str:
    """Return 'surplus', 'deficit' or 'balanced' (missing values count as 0)."""
    balance = (production or 0.0) - (consumption or 0.0)
    if balance > 0:
        return "surplus"
    if balance < 0:
        return "deficit"
    return "balanced"


def cluster_label(cluster_id: int) -> str:
    return "Outlier" if cluster_id == -1 else f"Cluster {cluster_id}"
