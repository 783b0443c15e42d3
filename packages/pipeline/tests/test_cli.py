"""
tests/test_cli.py — click commands run through CliRunner against an in-memory DuckDB.
"""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from provdata_pipeline.cli import main
from provdata_shared.db import fetch_dicts, read_scope


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_init_db(runner, duck):
    result = runner.invoke(main, ["init-db"])
    assert result.exit_code == 0, result.output
    assert "Schema ready" in result.output


def test_seed_provinces(runner, duck, fixture_path):
    result = runner.invoke(
        main, ["seed-provinces", str(fixture_path / "provinces_sample.geojson")]
    )

    assert result.exit_code == 0, result.output
    assert "3 created, 0 updated (1 without geometry)" in result.output
    with read_scope() as cur:
        names = [r["name"] for r in fetch_dicts(cur, "SELECT name FROM provinces ORDER BY name")]
    assert names == ["ACEH", "JAWA BARAT", "PAPUA"]


def test_seed_provinces_missing_file(runner, duck, tmp_path):
    result = runner.invoke(main, ["seed-provinces", str(tmp_path / "missing.geojson")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_import_reports_row_failures(runner, provinces, fixture_path):
    result = runner.invoke(
        main,
        [
            "import",
            "food-security",
            str(fixture_path / "food_security_sample.csv"),
            "--user",
            "ayu",
            "--role",
            "field_officer",
        ],
    )

    assert result.exit_code == 1
    assert "2 created, 0 updated, 1 failed" in result.output
    assert "row 3: Province 'Atlantis' not found" in result.output


def test_import_json_output(runner, provinces, fixture_path):
    result = runner.invoke(
        main, ["import", "gwpr", str(fixture_path / "gwpr_sample.csv"), "--json"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["created"] == 2
    assert payload["status"] == "success"


def test_import_dry_run(runner, provinces, fixture_path):
    result = runner.invoke(
        main, ["import", "gwpr", str(fixture_path / "gwpr_sample.csv"), "--dry-run"]
    )

    assert result.exit_code == 0, result.output
    assert "dry run" in result.output
    with read_scope() as cur:
        assert fetch_dicts(cur, "SELECT count(*) AS n FROM gwpr")[0]["n"] == 0


def test_import_forbidden_role(runner, provinces, fixture_path):
    result = runner.invoke(
        main,
        ["import", "gwpr", str(fixture_path / "gwpr_sample.csv"), "--role", "public"],
    )
    assert result.exit_code == 1
    assert "may not modify data" in result.output


def test_explicit_system_role_is_checked_like_any_other(runner, provinces, fixture_path):
    result = runner.invoke(
        main,
        ["import", "gwpr", str(fixture_path / "gwpr_sample.csv"), "--role", "system"],
    )
    assert result.exit_code == 1
    assert "may not modify data" in result.output


def test_reclassify(runner, provinces, fixture_path):
    runner.invoke(main, ["import", "food-security", str(fixture_path / "food_security_sample.csv")])
    result = runner.invoke(main, ["reclassify", "food-security"])

    assert result.exit_code == 0, result.output
    assert "food-security: 0 row(s) reclassified" in result.output


def test_status(runner, provinces):
    result = runner.invoke(main, ["status"])

    assert result.exit_code == 0, result.output
    assert "(3 with geometry)" in result.output
    assert "connections" in result.output
    assert "trade_margins" in result.output
    assert "neighbor_sets" in result.output


def test_import_trade_margins_csv(runner, provinces, tmp_path):
    path = tmp_path / "mpp.csv"
    path.write_text(
        "source,target,distribution_costs,distribution_volume\n"
        "Aceh,Jawa Barat,1250.5,40\n"
        "Aceh,Aceh,10,1\n"
    )

    result = runner.invoke(main, ["import", "mpp", str(path)])

    assert result.exit_code == 1
    assert "1 created, 0 updated, 1 failed" in result.output
    assert "self-route" in result.output
