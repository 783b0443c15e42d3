"""
sources/base.py — Contract for province registry sources.

A source turns some external description of the provinces (today a GeoJSON
FeatureCollection) into a polars frame with one row per province and the
columns name, code, geometry (JSON text or null) and metadata (JSON text),
ready for provdata_shared.provinces.seed_provinces.

Subclasses implement:
  extract()      — load the raw features
  transform()    — normalize them into the seed frame
  get_metadata() — describe where the provinces came from

The seed-provinces command calls run(), which logs both steps and the
metadata returned by get_metadata() once transform() has counted the rows.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

import polars as pl
import structlog

log = structlog.get_logger(__name__)


class BaseSource(ABC):
    """A registry source; `name` tags every log event the source emits."""

    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(province_source=self.name)

    @abstractmethod
    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """Load the raw province features."""
        ...

    @abstractmethod
    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """Return the seed frame: name, code, geometry, metadata."""
        ...

    @abstractmethod
    async def get_metadata(self) -> dict[str, Any]:
        ...

    async def run(self, **kwargs: Any) -> pl.DataFrame:
        """
        Extract then transform, logging feature and province counts.

        Raises:
            Whatever extract() or transform() raise, after logging it.
        """
        t0 = time.monotonic()
        try:
            raw = await self.extract(**kwargs)
            self._log.info(
                "province_features_loaded",
                features=len(raw),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            seeds = self.transform(raw)
        except Exception as exc:
            self._log.error(
                "province_source_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise

        self._log.info(
            "province_seeds_ready",
            provinces=len(seeds),
            without_geometry=seeds["geometry"].null_count(),
            **await self.get_metadata(),
        )
        return seeds
