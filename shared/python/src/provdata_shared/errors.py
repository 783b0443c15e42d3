"""
errors.py — the provdata error taxonomy.

Every error raised by the core derives from ProvDataError and carries a
stable machine-readable `code` plus the HTTP status the API renders it with.

    ValidationError      malformed row or request
    NotFoundError        referenced province / record absent
    ConflictError        natural-key collision on create
    AuthError            missing / invalid principal or role
    InfrastructureError  storage unavailable or transaction abort

Row-level errors inside a bulk import are captured into the import result;
single-entity paths let them propagate.
"""

from __future__ import annotations

from typing import Any


class ProvDataError(Exception):
    """Base class for all provdata errors."""

    code: str = "error"
    status_code: int = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(ProvDataError):
    code = "validation_error"
    status_code = 422


class NotFoundError(ProvDataError):
    code = "not_found"
    status_code = 404


class MapDataNotFound(NotFoundError):
    """No fact rows for the requested year; carries the years that do have data."""

    code = "map_data_not_found"

    def __init__(self, message: str, *, available_years: list[int]) -> None:
        super().__init__(message, details={"available_years": available_years})
        self.available_years = available_years


class ConflictError(ProvDataError):
    code = "conflict"
    status_code = 409


class AuthError(ProvDataError):
    code = "unauthorized"
    status_code = 401


class ForbiddenError(AuthError):
    code = "forbidden"
    status_code = 403


class InfrastructureError(ProvDataError):
    code = "infrastructure_error"
    status_code = 503


class BulkImportAborted(InfrastructureError):
    """
    A storage failure aborted a bulk import.

    The failing chunk was rolled back. `committed` holds the import result of
    the chunks that were committed before the failure (may be empty).
    """

    code = "bulk_import_aborted"

    def __init__(self, message: str, *, committed: Any) -> None:
        super().__init__(message, details={"committed": committed.to_dict()})
        self.committed = committed


# Errors that fail a single row of a bulk import without aborting it.
ROW_ERRORS: tuple[type[ProvDataError], ...] = (ValidationError, NotFoundError, ConflictError)
