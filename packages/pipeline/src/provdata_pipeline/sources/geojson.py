"""
sources/geojson.py — Province geometry source (GeoJSON FeatureCollection).

Provinces are seeded once from a FeatureCollection whose features carry the
province name (and optionally a code) in their properties. The source may
be a local file path or an http(s) URL.

Feature shape:
  {
    "type": "Feature",
    "properties": { "PROVINSI": "JAWA BARAT", "KODE_PROV": 32, ... },
    "geometry": { "type": "MultiPolygon", "coordinates": [...] }
  }

Usage:
    source = GeoJSONSource("./data/provinces.geojson")
    df = await source.run()
    # columns: name, code, geometry (JSON text), metadata (JSON text)
    seeds = GeoJSONSource.to_seeds(df)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import polars as pl

from provdata_pipeline.sources.base import BaseSource
from provdata_pipeline.utils.retry import with_retry
from provdata_shared.config import settings
from provdata_shared.errors import InfrastructureError, ValidationError
from provdata_shared.models.province import ProvinceSeed


class GeoJSONSource(BaseSource):
    """Reads province features from a GeoJSON file or URL."""

    name = "GeoJSON"

    def __init__(
        self,
        source: str | None = None,
        *,
        name_property: str | None = None,
        code_property: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__()
        self._source = source or settings.geojson_source
        self._name_property = name_property or settings.geojson_name_property
        self._code_property = code_property or settings.geojson_code_property
        self._timeout = timeout
        self._record_count = 0

    @property
    def is_remote(self) -> bool:
        return self._source.startswith(("http://", "https://"))

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _fetch(self, url: str) -> dict[str, Any]:
        self._log.info("geojson_fetch", url=url)
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.json()

    def _read_file(self, path: str) -> dict[str, Any]:
        file_path = Path(path)
        if not file_path.is_file():
            raise ValidationError(f"GeoJSON file not found: {path}")
        try:
            return json.loads(file_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Invalid GeoJSON in {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # BaseSource interface
    # ------------------------------------------------------------------

    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """
        Load the FeatureCollection.

        Returns:
            Raw polars DataFrame with one row per feature and columns
            properties (JSON text) and geometry (JSON text or null).
        """
        if self.is_remote:
            try:
                payload = await self._fetch(self._source)
            except httpx.HTTPError as exc:
                raise InfrastructureError(
                    f"Could not fetch GeoJSON from {self._source}: {exc}"
                ) from exc
        else:
            payload = self._read_file(self._source)
        if not isinstance(payload, dict) or payload.get("type") != "FeatureCollection":
            raise ValidationError("GeoJSON source must be a FeatureCollection")

        features = payload.get("features") or []
        return pl.DataFrame(
            {
                "properties": [json.dumps(f.get("properties") or {}) for f in features],
                "geometry": [
                    json.dumps(f["geometry"]) if f.get("geometry") else None for f in features
                ],
            },
            schema={"properties": pl.String, "geometry": pl.String},
        )

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Pull name and code out of the feature properties.

        Features without a name are dropped. When a name repeats, the last
        feature wins.
        """
        df = raw.with_columns(
            pl.col("properties")
            .str.json_path_match(f"$.{self._name_property}")
            .str.strip_chars()
            .alias("name"),
            pl.col("properties")
            .str.json_path_match(f"$.{self._code_property}")
            .str.strip_chars()
            .alias("code"),
        )
        dropped = df.filter(pl.col("name").is_null() | (pl.col("name") == ""))
        if len(dropped):
            self._log.warning("geojson_features_without_name", count=len(dropped))

        df = (
            df.filter(pl.col("name").is_not_null() & (pl.col("name") != ""))
            .unique(subset=["name"], keep="last", maintain_order=True)
            .select(
                "name",
                "code",
                "geometry",
                pl.col("properties").alias("metadata"),
            )
        )
        self._record_count = len(df)
        return df

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "location": self._source,
            "remote": self.is_remote,
            "name_property": self._name_property,
            "code_property": self._code_property,
            "record_count": self._record_count,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def to_seeds(df: pl.DataFrame) -> list[ProvinceSeed]:
        """Convert the transformed frame into ProvinceSeed models."""
        return [
            ProvinceSeed(
                name=row["name"],
                code=row["code"],
                geometry=json.loads(row["geometry"]) if row["geometry"] else None,
                metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            )
            for row in df.iter_rows(named=True)
        ]
