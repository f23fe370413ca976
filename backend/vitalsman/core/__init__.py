"""
Core utilities for Vitalsman.
"""
from vitalsman.core.security import (
    create_access_token,
    decode_token,
    check_permission,
    PERMISSIONS,
)

__all__ = [
    "create_access_token",
    "decode_token",
    "check_permission",
    "PERMISSIONS",
]
