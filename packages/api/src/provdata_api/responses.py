"""
responses.py — JSON envelopes for every /v1 response.

Success:  {"data": …, "meta": {"total_count": n}}   (total_count only for lists)
Failure:  {"error": {"code": …, "message": …, "details": {…}}}

Error codes are the ProvDataError codes (validation_error, not_found,
map_data_not_found, conflict, unauthorized, forbidden, infrastructure_error,
bulk_import_aborted); the HTTP status comes from the same exception.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ApiError(BaseModel):
    """OpenAPI schema for the failure envelope."""

    error: ErrorDetail


def wrap_response(data: Any, *, total_count: int | None = None) -> dict[str, Any]:
    """Wrap a service result; pydantic models (alone or in a list) are dumped to JSON types."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
    meta = {"total_count": total_count} if total_count is not None else {}
    return {"data": data, "meta": meta}


def error_response(
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Failure envelope; details is omitted when empty."""
    err: dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return {"error": err}
