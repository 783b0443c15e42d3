from fastapi import APIRouter

from provdata_api.routers.v1 import (
    connections,
    facts,
    imports,
    maps,
    provinces,
    relations,
    statistics,
)

v1_router = APIRouter(prefix="/v1")

v1_router.include_router(maps.router)
v1_router.include_router(connections.router)
v1_router.include_router(relations.router)
v1_router.include_router(statistics.router)
v1_router.include_router(imports.router)
v1_router.include_router(facts.router)
v1_router.include_router(provinces.router)
