"""
provdata_pipeline.sources — source adapters.

  GeoJSONSource — province names, codes and geometry from a FeatureCollection
"""

from provdata_pipeline.sources.geojson import GeoJSONSource

__all__ = ["GeoJSONSource"]
