"""
FastAPI dependencies for authentication and capability checks.
"""
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vitalsman.core.exceptions import ForbiddenError, UnauthorizedError
from vitalsman.core.security import check_permission, decode_token
from vitalsman.database import get_db

security = HTTPBearer(auto_error=False)


@dataclass
class Principal:
    """Caller identity carried by the bearer token."""
    subject: str
    role: str


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Principal:
    """Resolve the caller from its JWT."""
    if credentials is None:
        raise UnauthorizedError("Not authenticated")

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError()

    subject = payload.get("sub")
    if subject is None:
        raise UnauthorizedError()

    return Principal(subject=str(subject), role=str(payload.get("role", "")))


def require_permission(permission: str):
    """Dependency factory for capability checking."""

    async def permission_checker(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if not check_permission(principal.role, permission):
            raise ForbiddenError(f"Permission denied: {permission}")
        return principal

    return permission_checker


CwvReader = Annotated[Principal, Depends(require_permission("cwv:read"))]
CwvManager = Annotated[Principal, Depends(require_permission("cwv:manage"))]

__all__ = [
    "CwvManager",
    "CwvReader",
    "Principal",
    "get_current_principal",
    "get_db",
    "require_permission",
]
