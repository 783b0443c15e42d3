"""JWT bearer authentication: turns a token into a Principal."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import Depends, Request
from jose import JWTError
from jose import jwt as jose_jwt

from provdata_shared.config import settings
from provdata_shared.errors import AuthError
from provdata_shared.models.principal import Principal

logger = structlog.get_logger(__name__)


def _validate_jwt(token: str) -> dict[str, Any] | None:
    """Validate an HS256 JWT and return its claims."""
    try:
        return jose_jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
    except JWTError as exc:
        logger.info("jwt_rejected", error=str(exc))
        return None


async def get_principal(request: Request) -> Principal | None:
    """Extract the caller from the Authorization header.

    Returns None if no credentials are provided (public read access).
    Raises AuthError if credentials are present but invalid.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        return None
    if not auth_header.startswith("Bearer "):
        raise AuthError("Authorization header must use the Bearer scheme")

    claims = _validate_jwt(auth_header[7:])
    if claims is None:
        raise AuthError("Invalid or expired token")

    name = claims.get("name") or claims.get("sub")
    if not name:
        raise AuthError("Token carries no subject")
    return Principal(name=str(name), role=str(claims.get("role") or "public"))


def require_write_role():
    """Dependency factory that requires a principal holding a write role."""

    async def _dependency(
        principal: Principal | None = Depends(get_principal),
    ) -> Principal:
        if principal is None:
            raise AuthError("Authentication required")
        principal.require_write()
        return principal

    return _dependency
