"""Map endpoints: GeoJSON FeatureCollections ready for a choropleth."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from provdata_shared.constants import MapSelector, SupplyCondition
from provdata_shared.errors import ValidationError
from provdata_shared.models.maps import MapFilters

from provdata_api.responses import ApiError, wrap_response
from provdata_api.services import map_service

router = APIRouter(prefix="/maps", tags=["maps"])

_CACHE = {"Cache-Control": "max-age=300"}


def map_filters(
    category: int | None = Query(None, description="Food security category 1-6"),
    condition: SupplyCondition | None = Query(None, description="Supply chain condition"),
    cluster_id: int | None = Query(None, description="Cluster id (-1 = outlier)"),
    month: int | None = Query(None, description="Month 1-12 (climate)"),
) -> MapFilters:
    try:
        return MapFilters(
            category=category,
            condition=condition,
            cluster_id=cluster_id,
            month=month,
        )
    except PydanticValidationError as exc:
        raise ValidationError(
            "; ".join(e["msg"] for e in exc.errors()),
            details={"filters": [".".join(map(str, e["loc"])) for e in exc.errors()]},
        ) from None


@router.get("/base")
def base_map():
    return wrap_response(map_service.base_map())


@router.get("/overview")
def overview():
    return wrap_response(map_service.map_overview())


@router.get("/provinces/{province}/summary", responses={404: {"model": ApiError}})
def province_summary(province: str, year: int | None = Query(None)):
    return wrap_response(map_service.province_summary(province, year))


@router.get("/{dataset}/{year}", responses={404: {"model": ApiError}, 422: {"model": ApiError}})
def dataset_map(
    dataset: MapSelector,
    year: int,
    filters: MapFilters = Depends(map_filters),
):
    collection = map_service.compose_map(dataset, year, filters)
    return wrap_response(collection, total_count=len(collection.features))
