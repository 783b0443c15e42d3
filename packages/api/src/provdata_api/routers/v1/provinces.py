"""Province registry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from provdata_shared.db import read_scope
from provdata_shared.provinces import list_provinces, resolve

from provdata_api.responses import ApiError, wrap_response

router = APIRouter(prefix="/provinces", tags=["provinces"])


@router.get("")
def provinces(
    with_geometry: bool | None = Query(
        None, description="Only provinces with (or without) geometry"
    ),
):
    with read_scope() as cur:
        rows = list_provinces(cur, with_geometry=with_geometry)
    data = [{**p.identity(), "has_geometry": p.has_geometry} for p in rows]
    return wrap_response(data, total_count=len(data))


@router.get("/{ref}", responses={404: {"model": ApiError}})
def province(ref: str):
    """Look up a province by id, name or code (geometry included)."""
    with read_scope() as cur:
        found = resolve(cur, ref)
    return wrap_response(found)
