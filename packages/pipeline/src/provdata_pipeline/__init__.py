"""
provdata_pipeline — ingestion side of the provdata platform.

Architecture:
  sources/     — province geometry source (GeoJSON file or URL)
  transforms/  — tabular files → nested fact rows
  loaders/     — bulk reconciliation engine (idempotent upserts into DuckDB)
  utils/       — structlog configuration, exponential-backoff retry decorator

Quick start:
    from provdata_pipeline.loaders.fact_loader import FactLoader
    from provdata_shared.models.principal import SYSTEM

    result = FactLoader().submit_bulk("supply-chain", rows, SYSTEM)

CLI:
    provdata init-db
    provdata seed-provinces ./data/provinces.geojson
    provdata import food-security ./data/food_security_2024.csv --dry-run
"""

__version__ = "0.1.0"
