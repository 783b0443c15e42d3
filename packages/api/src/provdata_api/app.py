"""
app.py — FastAPI application factory for the provdata API.

Start with:
    uvicorn provdata_api.app:app --reload --port 8000

Endpoints:
    GET    /health, /ready
    GET    /v1/maps/base
    GET    /v1/maps/overview
    GET    /v1/maps/provinces/{province}/summary
    GET    /v1/maps/{dataset}/{year}
    GET    /v1/connections/statistics
    GET    /v1/connections/matrix/{year}
    GET    /v1/connections/{province}
    DELETE /v1/connections/{connection_id}
    POST   /v1/imports/{dataset}
    POST   /v1/facts/{dataset}
    GET    /v1/facts/food-security/categories
    GET    /v1/facts/{dataset}/{province}/{year}
    GET    /v1/provinces
    GET    /v1/provinces/{ref}
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from provdata_pipeline.utils.logging import configure_logging
from provdata_shared.config import settings
from provdata_shared.db import init_schema
from provdata_shared.errors import ProvDataError

from provdata_api import __version__
from provdata_api.middleware.logging import LoggingMiddleware
from provdata_api.responses import error_response
from provdata_api.routers.health import router as health_router
from provdata_api.routers.v1 import v1_router

log = structlog.get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_schema()
    log.info("schema_ready", duckdb_path=settings.duckdb_path)
    yield


async def _provdata_error_handler(request: Request, exc: ProvDataError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request_error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, details=exc.details),
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_response(
            "validation_error", "Request validation failed", details={"errors": errors}
        ),
    )


def create_app(*, init_db: bool = True) -> FastAPI:
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="provdata API",
        description="Provincial food security and supply chain data API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=_lifespan if init_db else None,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ProvDataError, _provdata_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(health_router)
    app.include_router(v1_router)

    log.info("app_created", cors_origins=settings.cors_origins_list)
    return app


app = create_app()
