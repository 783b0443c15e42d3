"""Tests for /v1/facts endpoints."""

from __future__ import annotations


def test_create_record(client, provinces, writer_headers, make_row):
    response = client.post(
        "/v1/facts/supply-chain",
        json=make_row.supply_chain("Jawa Barat", 2024, 50.0, 60.0),
        headers=writer_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["province_id"] == provinces["Jawa Barat"].id
    assert data["condition"] == "deficit"
    assert data["created_by"] == "ayu"


def test_create_conflict_is_409(client, provinces, writer_headers, make_row):
    row = make_row.gwpr("Aceh", 2024)
    assert client.post("/v1/facts/gwpr", json=row, headers=writer_headers).status_code == 201

    response = client.post("/v1/facts/gwpr", json=row, headers=writer_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "conflict"


def test_create_invalid_row_is_422(client, provinces, writer_headers, make_row):
    row = make_row.food_security("Aceh", 2024, 120.0)
    response = client.post("/v1/facts/food-security", json=row, headers=writer_headers)
    assert response.status_code == 422
    assert response.json()["error"]["details"]["errors"][0]["loc"] == (
        "dependent_variable.food_security_index"
    )


def test_create_connection(client, provinces, writer_headers, make_row):
    response = client.post(
        "/v1/facts/connections",
        json=make_row.connection("Aceh", "Papua", 2021),
        headers=writer_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["target_province_name"] == "Papua"


def test_create_requires_write_role(client, provinces, reader_headers, make_row):
    response = client.post(
        "/v1/facts/gwpr", json=make_row.gwpr("Aceh", 2024), headers=reader_headers
    )
    assert response.status_code == 403


def test_get_record(client, seeded):
    response = client.get("/v1/facts/clustering/Jawa Barat/2024")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["cluster_id"] == -1
    assert data["cluster_summary"]["stability"]["status"] == "poor"


def test_get_monthly_record(client, seeded):
    assert client.get("/v1/facts/climate/Aceh/2024").status_code == 422
    response = client.get("/v1/facts/climate/Aceh/2024", params={"month": 1})
    assert response.status_code == 200
    assert response.json()["data"]["month"] == 1


def test_get_missing_record(client, seeded):
    response = client.get("/v1/facts/gwpr/Aceh/2024")
    assert response.status_code == 404


def test_food_security_categories(client, seeded):
    response = client.get("/v1/facts/food-security/categories", params={"year": 2024})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 3
    counts = {c["category"]: c["count"] for c in data["categories"]}
    assert counts == {1: 1, 2: 0, 3: 1, 4: 0, 5: 1, 6: 0}
    assert data["categories"][0]["max_index"] == 37.61
    assert data["categories"][-1]["max_index"] == 100.0
