"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from provdata_shared.db import read_scope

from provdata_api import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}


@router.get("/ready")
def ready() -> dict:
    # Raises InfrastructureError (503) when DuckDB is unreachable
    with read_scope() as cur:
        cur.execute("SELECT 1").fetchone()
    return {"status": "ready"}
