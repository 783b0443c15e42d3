"""Single fact record endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from provdata_pipeline.loaders.fact_loader import FactLoader
from provdata_shared.constants import DatasetName, FactDatasetName
from provdata_shared.models.principal import Principal

from provdata_api.dependencies import get_loader, require_write_role
from provdata_api.responses import ApiError, wrap_response
from provdata_api.services import fact_service

router = APIRouter(prefix="/facts", tags=["facts"])


@router.post("/{dataset}", status_code=201, responses={409: {"model": ApiError}})
def create_record(
    dataset: DatasetName,
    row: dict[str, Any] = Body(...),
    principal: Principal = Depends(require_write_role()),
    loader: FactLoader = Depends(get_loader),
):
    return wrap_response(loader.create_one(dataset, row, principal))


@router.get("/food-security/categories")
def food_security_categories(year: int | None = Query(None)):
    return wrap_response(fact_service.food_security_categories(year))


@router.get("/{dataset}/{province}/{year}", responses={404: {"model": ApiError}})
def get_record(
    dataset: FactDatasetName,
    province: str,
    year: int,
    month: int | None = Query(None, ge=1, le=12),
):
    return wrap_response(fact_service.get_record(dataset, province, year, month))
