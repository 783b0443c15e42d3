"""Tests for /v1/provinces and the health endpoints."""

from __future__ import annotations


def test_list_provinces(client, provinces):
    response = client.get("/v1/provinces")
    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["total_count"] == 4
    assert body["data"][-1] == {
        "id": provinces["Papua"].id,
        "name": "Papua",
        "code": "91",
        "has_geometry": False,
    }


def test_list_without_geometry(client, provinces):
    data = client.get("/v1/provinces", params={"with_geometry": False}).json()["data"]
    assert [p["name"] for p in data] == ["Papua"]


def test_get_province_by_code(client, provinces):
    response = client.get("/v1/provinces/32")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Jawa Barat"
    assert data["geometry"]["type"] == "Polygon"


def test_unknown_province(client, provinces):
    response = client.get("/v1/provinces/Atlantis")
    assert response.status_code == 404
    assert response.json() == {
        "error": {
            "code": "not_found",
            "message": "Province 'Atlantis' not found",
            "details": {"province": "Atlantis"},
        }
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ready(client):
    assert client.get("/ready").json() == {"status": "ready"}


def test_request_id_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
