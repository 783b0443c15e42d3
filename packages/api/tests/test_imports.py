"""Tests for POST /v1/imports/{dataset}."""

from __future__ import annotations

from provdata_shared.db import fetch_dicts, read_scope


def test_import_partial_failure_still_200(client, provinces, writer_headers, make_row):
    response = client.post(
        "/v1/imports/connections",
        json={
            "rows": [
                make_row.connection("Aceh", "Jawa Barat", 2020),
                make_row.connection("Aceh", "Aceh", 2020),
            ]
        },
        headers=writer_headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert (data["created"], data["failed"]) == (1, 1)
    assert data["status"] == "partial_failure"
    assert data["errors"][0]["index"] == 2
    assert data["errors"][0]["error"].startswith("self-connection")


def test_import_records_principal(client, provinces, writer_headers, make_row):
    response = client.post(
        "/v1/imports/food-security",
        json={"rows": [make_row.food_security("Aceh", 2024, 60.0)]},
        headers=writer_headers,
    )

    assert response.json()["data"]["created"] == 1
    with read_scope() as cur:
        row = fetch_dicts(cur, "SELECT created_by, user_role FROM food_security")[0]
    assert row == {"created_by": "ayu", "user_role": "field_officer"}


def test_dry_run(client, provinces, writer_headers, make_row):
    response = client.post(
        "/v1/imports/food-security",
        json={"rows": [make_row.food_security("Aceh", 2024, 60.0)], "dry_run": True},
        headers=writer_headers,
    )

    data = response.json()["data"]
    assert data["dry_run"] is True
    assert data["created"] == 1
    with read_scope() as cur:
        assert fetch_dicts(cur, "SELECT count(*) AS n FROM food_security")[0]["n"] == 0


def test_import_requires_token(client, provinces, make_row):
    response = client.post(
        "/v1/imports/food-security",
        json={"rows": [make_row.food_security("Aceh", 2024, 60.0)]},
    )
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthorized"


def test_import_public_role_forbidden(client, provinces, reader_headers, make_row):
    response = client.post(
        "/v1/imports/food-security",
        json={"rows": [make_row.food_security("Aceh", 2024, 60.0)]},
        headers=reader_headers,
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "forbidden"


def test_unknown_dataset(client, provinces, writer_headers):
    response = client.post("/v1/imports/rainfall", json={"rows": []}, headers=writer_headers)
    assert response.status_code == 422
