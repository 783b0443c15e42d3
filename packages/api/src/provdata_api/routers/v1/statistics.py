"""Aggregate statistics per dataset and year."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path, Query

from provdata_shared.config import settings
from provdata_shared.constants import GwprVariable

from provdata_api.responses import ApiError, wrap_response
from provdata_api.services import fact_service

router = APIRouter(prefix="/statistics", tags=["statistics"])

Year = Annotated[int, Path(ge=settings.year_min, le=settings.year_max)]


@router.get("/food-security/trend/{province}", responses={404: {"model": ApiError}})
def food_security_trend(province: str):
    data = fact_service.food_security_trend(province)
    return wrap_response(data, total_count=len(data["trend"]))


@router.get("/food-security/{year}/average")
def food_security_average(year: Year):
    return wrap_response(fact_service.food_security_average(year))


@router.get("/food-security/{year}/ranking")
def food_security_ranking(year: Year):
    data = fact_service.food_security_ranking(year)
    return wrap_response(data, total_count=data["total_provinces"])


@router.get("/supply-chain/{year}", responses={404: {"model": ApiError}})
def supply_chain(year: Year):
    return wrap_response(fact_service.supply_chain_stats(year))


@router.get("/clustering/{year}")
def clustering(year: Year):
    return wrap_response(fact_service.cluster_stats(year))


@router.get("/clustering/{year}/outliers")
def clustering_outliers(year: Year):
    outliers = fact_service.cluster_outliers(year)
    return wrap_response(outliers, total_count=len(outliers))


@router.get("/gwpr/variables/{variable}")
def gwpr_variable(variable: GwprVariable, year: int | None = Query(None)):
    return wrap_response(fact_service.gwpr_variable_stats(variable, year))
