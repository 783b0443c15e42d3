"""Province connection (trade graph) endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from provdata_pipeline.loaders.fact_loader import FactLoader
from provdata_shared.constants import ConnectionDirection
from provdata_shared.models.principal import Principal

from provdata_api.dependencies import get_loader, require_write_role
from provdata_api.responses import wrap_response
from provdata_api.services import connection_service

router = APIRouter(prefix="/connections", tags=["connections"])


@router.get("/statistics")
def statistics(
    top_n: int = Query(10, ge=1, le=100),
    year: int | None = Query(None),
):
    data = {
        **connection_service.connection_summary(year),
        "top_provinces": connection_service.connection_statistics(top_n, year),
    }
    return wrap_response(data)


@router.get("/matrix/{year}")
def matrix(year: int):
    data = connection_service.trade_matrix(year)
    return wrap_response(data, total_count=len(data["edges"]))


@router.get("/{province}")
def province_connections(
    province: str,
    direction: ConnectionDirection = Query("both"),
    year: int | None = Query(None),
):
    edges = connection_service.query_connections(province, direction, year)
    return wrap_response(edges, total_count=len(edges))


@router.delete("/{connection_id}", status_code=204)
def delete_connection(
    connection_id: str,
    principal: Principal = Depends(require_write_role()),
    loader: FactLoader = Depends(get_loader),
) -> Response:
    loader.delete_connection(connection_id, principal)
    return Response(status_code=204)
