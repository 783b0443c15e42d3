"""
tests/test_sources/test_geojson.py — Unit tests for GeoJSONSource.

Remote sources are mocked with respx; local sources read the fixture file.
"""

from __future__ import annotations

import json

import httpx
import polars as pl
import pytest
import respx

from provdata_pipeline.sources.geojson import GeoJSONSource
from provdata_shared.errors import InfrastructureError, ValidationError

URL = "https://geo.example.org/provinces.geojson"


# ---------------------------------------------------------------------------
# extract() tests
# ---------------------------------------------------------------------------

class TestGeoJSONExtract:
    @pytest.mark.asyncio
    async def test_extract_from_file(self, fixture_path):
        source = GeoJSONSource(str(fixture_path / "provinces_sample.geojson"))
        df = await source.extract()

        assert isinstance(df, pl.DataFrame)
        assert df.columns == ["properties", "geometry"]
        assert len(df) == 5
        assert df["geometry"].null_count() == 1

    @pytest.mark.asyncio
    async def test_extract_from_url(self, geojson_payload: dict):
        source = GeoJSONSource(URL)
        with respx.mock() as router:
            route = router.get(URL).mock(return_value=httpx.Response(200, json=geojson_payload))
            df = await source.extract()

        assert route.called
        assert source.is_remote
        assert len(df) == 5

    @pytest.mark.asyncio
    async def test_http_error_is_infrastructure_error(self):
        source = GeoJSONSource(URL)
        with respx.mock() as router:
            router.get(URL).mock(return_value=httpx.Response(500))
            with pytest.raises(InfrastructureError):
                await source.extract()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        source = GeoJSONSource(str(tmp_path / "nope.geojson"))
        with pytest.raises(ValidationError, match="not found"):
            await source.extract()

    @pytest.mark.asyncio
    async def test_not_a_feature_collection(self, tmp_path):
        path = tmp_path / "feature.geojson"
        path.write_text(json.dumps({"type": "Feature", "properties": {}, "geometry": None}))
        with pytest.raises(ValidationError, match="FeatureCollection"):
            await GeoJSONSource(str(path)).extract()


# ---------------------------------------------------------------------------
# transform() / run() tests
# ---------------------------------------------------------------------------

class TestGeoJSONTransform:
    @pytest.mark.asyncio
    async def test_run_extracts_names_and_codes(self, fixture_path):
        source = GeoJSONSource(str(fixture_path / "provinces_sample.geojson"))
        df = (await source.run()).sort("name")

        assert df["name"].to_list() == ["ACEH", "JAWA BARAT", "PAPUA"]
        assert df["code"].to_list() == ["11", "32", "91"]

    @pytest.mark.asyncio
    async def test_last_duplicate_wins(self, fixture_path):
        source = GeoJSONSource(str(fixture_path / "provinces_sample.geojson"))
        df = await source.run()

        aceh = df.filter(pl.col("name") == "ACEH")
        assert len(aceh) == 1
        assert json.loads(aceh["metadata"][0])["SUMBER"] == "BPS"

    @pytest.mark.asyncio
    async def test_custom_property_names(self, tmp_path):
        path = tmp_path / "custom.geojson"
        path.write_text(
            json.dumps(
                {
                    "type": "FeatureCollection",
                    "features": [
                        {
                            "type": "Feature",
                            "properties": {"nama": "Bali", "kode": "51"},
                            "geometry": {"type": "Point", "coordinates": [115.1, -8.4]},
                        }
                    ],
                }
            )
        )
        source = GeoJSONSource(str(path), name_property="nama", code_property="kode")
        df = await source.run()

        assert df.row(0, named=True)["name"] == "Bali"
        metadata = await source.get_metadata()
        assert metadata["record_count"] == 1
        assert (metadata["location"], metadata["remote"]) == (str(path), False)

    @pytest.mark.asyncio
    async def test_to_seeds(self, fixture_path):
        df = await GeoJSONSource(str(fixture_path / "provinces_sample.geojson")).run()
        seeds = {s.name: s for s in GeoJSONSource.to_seeds(df)}

        assert seeds["PAPUA"].geometry is None
        assert seeds["ACEH"].geometry["type"] == "Polygon"
        assert seeds["ACEH"].metadata["KODE_PROV"] == 11
