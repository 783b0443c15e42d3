"""Shared FastAPI dependencies."""

from __future__ import annotations

from provdata_pipeline.loaders.fact_loader import FactLoader

from provdata_api.middleware.auth import get_principal, require_write_role


def get_loader() -> FactLoader:
    """A loader bound to the process DuckDB connection."""
    return FactLoader()


__all__ = [
    "get_loader",
    "get_principal",
    "require_write_role",
]
