"""Tests for connection graph queries (service layer)."""

from __future__ import annotations

import pytest

from provdata_api.services import connection_service
from provdata_shared.errors import NotFoundError, ValidationError


def _pairs(edges) -> list[tuple[str, str]]:
    return [(e.source.name, e.target.name) for e in edges]


class TestQueryConnections:
    def test_outgoing(self, seeded):
        edges = connection_service.query_connections("Aceh", "out", 2024)
        assert _pairs(edges) == [("Aceh", "Jawa Barat"), ("Aceh", "Jawa Tengah")]

    def test_incoming(self, seeded):
        edges = connection_service.query_connections("11", "in")
        assert _pairs(edges) == [("Jawa Barat", "Aceh"), ("Papua", "Aceh")]

    def test_both_directions_all_years(self, seeded):
        edges = connection_service.query_connections("Jawa Tengah")
        assert [(e.year, e.source.name) for e in edges] == [(2023, "Jawa Barat"), (2024, "Aceh")]

    def test_endpoints_carry_registry_identity(self, seeded):
        edge = connection_service.query_connections("Papua", "out")[0]
        assert edge.source.id == seeded["Papua"].id
        assert edge.source.code == "91"
        assert edge.target.code == "11"

    def test_unknown_province(self, seeded):
        with pytest.raises(NotFoundError):
            connection_service.query_connections("Atlantis")

    def test_unknown_direction(self, seeded):
        with pytest.raises(ValidationError):
            connection_service.query_connections("Aceh", "sideways")


class TestStatistics:
    def test_ranked_by_total_then_name(self, seeded):
        ranked = connection_service.connection_statistics(year=2024)

        assert [(r.rank, r.province.name, r.total) for r in ranked] == [
            (1, "Aceh", 4),
            (2, "Jawa Barat", 2),
            (3, "Jawa Tengah", 1),
            (4, "Papua", 1),
        ]
        assert (ranked[0].outgoing, ranked[0].incoming) == (2, 2)

    def test_top_n(self, seeded):
        ranked = connection_service.connection_statistics(top_n=2)
        assert [r.province.name for r in ranked] == ["Aceh", "Jawa Barat"]
        # Across all years Jawa Barat also has its 2023 edge
        assert ranked[1].total == 3

    def test_top_n_must_be_positive(self, seeded):
        with pytest.raises(ValidationError):
            connection_service.connection_statistics(top_n=0)

    def test_no_edges(self, provinces):
        assert connection_service.connection_statistics() == []

    def test_summary(self, seeded):
        summary = connection_service.connection_summary()
        assert summary == {
            "total_connections": 5,
            "years": [2023, 2024],
            "connections_by_year": [
                {"year": 2023, "count": 1},
                {"year": 2024, "count": 4},
            ],
        }


def test_trade_matrix(seeded):
    matrix = connection_service.trade_matrix(2024)

    ids = {name: p.id for name, p in seeded.items()}
    assert len(matrix["provinces"]) == 4
    assert len(matrix["edges"]) == 4
    assert sorted(matrix["adjacency"][ids["Aceh"]]) == sorted(
        [ids["Jawa Barat"], ids["Jawa Tengah"]]
    )
    assert matrix["adjacency"][ids["Papua"]] == [ids["Aceh"]]
    assert ids["Jawa Tengah"] not in matrix["adjacency"]
