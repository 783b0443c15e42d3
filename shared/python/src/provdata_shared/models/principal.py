"""
models/principal.py — the caller identity passed explicitly to write operations.

Write access is decided by role against settings.write_roles. The only
exception is the in-process SYSTEM principal used by the CLI and seeding
code; `trusted` is never derived from a token claim.
"""

from __future__ import annotations

from dataclasses import dataclass

from provdata_shared.config import settings
from provdata_shared.constants import SYSTEM_PRINCIPAL_NAME
from provdata_shared.errors import AuthError, ForbiddenError


@dataclass(frozen=True)
class Principal:
    name: str
    role: str
    trusted: bool = False

    @property
    def can_write(self) -> bool:
        return self.trusted or self.role in settings.write_roles_set

    def require_write(self) -> None:
        """Raise AuthError/ForbiddenError unless this principal may write."""
        if not self.name:
            raise AuthError("Authenticated principal required")
        if not self.can_write:
            raise ForbiddenError(
                f"Role '{self.role}' may not modify data. "
                f"Allowed roles: {', '.join(sorted(settings.write_roles_set))}"
            )


SYSTEM = Principal(name=SYSTEM_PRINCIPAL_NAME, role="system", trusted=True)
