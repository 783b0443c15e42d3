"""Bulk import endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from provdata_pipeline.loaders.fact_loader import FactLoader
from provdata_shared.constants import DatasetName
from provdata_shared.models.principal import Principal

from provdata_api.dependencies import get_loader, require_write_role
from provdata_api.responses import wrap_response

router = APIRouter(prefix="/imports", tags=["imports"])


class ImportRequest(BaseModel):
    rows: list[Any] = Field(default_factory=list)
    dry_run: bool = False


@router.post("/{dataset}")
def submit_import(
    dataset: DatasetName,
    body: ImportRequest,
    principal: Principal = Depends(require_write_role()),
    loader: FactLoader = Depends(get_loader),
):
    """
    Reconcile a batch of rows into one dataset.

    Always answers 200 with the same result shape; inspect `failed` and
    `errors` for rows that were skipped.
    """
    result = loader.submit_bulk(dataset, body.rows, principal, dry_run=body.dry_run)
    return wrap_response(result.to_dict(), total_count=result.total_processed)
