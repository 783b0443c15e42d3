"""Trade margin routes (mpp) and neighbour sets (sar)."""

from __future__ import annotations

from fastapi import APIRouter, Query

from provdata_api.responses import ApiError, wrap_response
from provdata_api.services import connection_service

router = APIRouter(tags=["relations"])


@router.get("/trade-margins", responses={404: {"model": ApiError}})
def trade_margins(source: str | None = Query(None, description="Source province id, name or code")):
    routes = connection_service.trade_margins(source)
    return wrap_response(routes, total_count=len(routes))


@router.get("/neighbors", responses={404: {"model": ApiError}})
def neighbors(province: str | None = Query(None, description="Main province id, name or code")):
    sets = connection_service.neighbor_sets(province)
    return wrap_response(sets, total_count=len(sets))
