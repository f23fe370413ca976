"""
Token verification and capability checks.

Tokens are issued by the host CMS; this service only verifies them and maps
the carried role to capabilities.
"""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from vitalsman.config import settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token (used by tests and local tooling)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None


# Capabilities per CMS role; editor and above may read CWV status
PERMISSIONS = {
    "administrator": ["cwv:read", "cwv:manage"],
    "editor": ["cwv:read"],
    "author": [],
    "contributor": [],
    "subscriber": [],
}


def check_permission(role: str, permission: str) -> bool:
    """Check if a role has a specific permission."""
    role_permissions = PERMISSIONS.get(role, [])
    return permission in role_permissions
