"""
tests/test_loaders/test_relation_loader.py — Trade margin (mpp) and neighbour
set (sar) upserts through the bulk loader.
"""

from __future__ import annotations

import json

import pytest

from provdata_pipeline.loaders.fact_loader import FactLoader
from provdata_shared.db import fetch_dicts, read_scope
from provdata_shared.errors import ConflictError, NotFoundError, ValidationError


def _rows(table: str) -> list[dict]:
    with read_scope() as cur:
        return fetch_dicts(cur, f"SELECT * FROM {table} ORDER BY created_at, id")


class TestTradeMargins:
    def test_upsert_updates_values_in_place(self, provinces, writer, make_row):
        loader = FactLoader()
        first = loader.submit_bulk(
            "mpp",
            [
                make_row.trade_margin("Aceh", "Jawa Barat"),
                make_row.trade_margin("Jawa Barat", "Aceh", costs=900.0),
            ],
            writer,
        )
        second = loader.submit_bulk(
            "mpp", [make_row.trade_margin("11", "32", costs=1400.0, volume=0.0)], writer
        )

        assert (first.created, first.updated) == (2, 0)
        assert (second.created, second.updated) == (0, 1)
        routes = {
            (r["source_province_name"], r["target_province_name"]): r
            for r in _rows("trade_margins")
        }
        assert len(routes) == 2
        aceh_jabar = routes[("Aceh", "Jawa Barat")]
        assert aceh_jabar["distribution_costs"] == 1400.0
        assert aceh_jabar["distribution_volume"] == 0.0
        assert aceh_jabar["updated_by"] == "ayu"

    def test_self_route_fails_row(self, provinces, writer, make_row):
        result = FactLoader().submit_bulk(
            "mpp", [make_row.trade_margin("Papua", provinces["Papua"].id)], writer
        )

        assert result.failed == 1
        assert result.errors[0]["error"].startswith("self-route")
        assert _rows("trade_margins") == []

    def test_negative_values_rejected(self, provinces, writer, make_row):
        result = FactLoader().submit_bulk(
            "mpp",
            [
                make_row.trade_margin("Aceh", "Papua", costs=-1.0),
                make_row.trade_margin("Aceh", "Papua", volume=-5.0),
            ],
            writer,
        )

        assert result.failed == 2
        assert {e["code"] for e in result.errors} == {"validation_error"}

    def test_both_values_required(self, provinces, writer):
        result = FactLoader().submit_bulk(
            "mpp", [{"source": "Aceh", "target": "Papua", "distribution_costs": 10.0}], writer
        )

        assert result.failed == 1
        assert "distribution_volume" in result.errors[0]["error"]

    def test_create_one_conflict(self, provinces, writer, make_row):
        loader = FactLoader()
        record = loader.create_one("mpp", make_row.trade_margin("Aceh", "Jawa Tengah"), writer)
        assert record["target_province_name"] == "Jawa Tengah"

        with pytest.raises(ConflictError, match="already exists"):
            loader.create_one("mpp", make_row.trade_margin("aceh", "33"), writer)


class TestNeighborSets:
    def test_create_resolves_and_dedupes_neighbors(self, provinces, writer, make_row):
        result = FactLoader().submit_bulk(
            "sar",
            [make_row.neighbor_set("Jawa Barat", ["Jawa Tengah", "33", "Aceh"])],
            writer,
        )

        assert result.created == 1
        stored = _rows("neighbor_sets")[0]
        assert stored["province_name"] == "Jawa Barat"
        assert json.loads(stored["neighbor_ids"]) == [
            provinces["Jawa Tengah"].id,
            provinces["Aceh"].id,
        ]

    def test_resubmission_replaces_the_list(self, provinces, writer, make_row):
        loader = FactLoader()
        loader.submit_bulk("sar", [make_row.neighbor_set("Aceh", ["Jawa Barat", "Papua"])], writer)
        second = loader.submit_bulk("sar", [make_row.neighbor_set("11", ["Papua"])], writer)

        assert (second.created, second.updated) == (0, 1)
        stored = _rows("neighbor_sets")
        assert len(stored) == 1
        assert json.loads(stored[0]["neighbor_ids"]) == [provinces["Papua"].id]

    def test_semicolon_list_from_csv(self, provinces, writer):
        result = FactLoader().submit_bulk(
            "sar", [{"main_province": "Aceh", "neighbor_provinces": "Jawa Barat; Papua"}], writer
        )

        assert result.created == 1

    def test_self_neighbor_fails_row(self, provinces, writer, make_row):
        result = FactLoader().submit_bulk(
            "sar", [make_row.neighbor_set("Aceh", ["Papua", "11"])], writer
        )

        assert result.failed == 1
        assert result.errors[0]["error"].startswith("self-neighbor")
        assert _rows("neighbor_sets") == []

    def test_empty_neighbor_list_rejected(self, provinces, writer, make_row):
        result = FactLoader().submit_bulk("sar", [make_row.neighbor_set("Aceh", [])], writer)

        assert result.failed == 1
        assert result.errors[0]["code"] == ValidationError.code

    def test_unknown_neighbor(self, provinces, writer, make_row):
        result = FactLoader().submit_bulk(
            "sar", [make_row.neighbor_set("Aceh", ["Atlantis"])], writer
        )

        assert result.errors[0]["code"] == NotFoundError.code

    def test_create_one_returns_decoded_ids(self, provinces, writer, make_row):
        loader = FactLoader()
        record = loader.create_one("sar", make_row.neighbor_set("Papua", ["Aceh"]), writer)

        assert record["neighbor_ids"] == [provinces["Aceh"].id]
        with pytest.raises(ConflictError):
            loader.create_one("sar", make_row.neighbor_set("91", ["Jawa Barat"]), writer)
