"""
Identity domain constants and simple helpers.

Why:
- Centralize the role vocabulary so the guard, the role lookup and the
  approval procedure agree on the same string.
- Admin status is tri-state. `UNKNOWN` means "not resolved yet" and must never
  be read as "not an admin" anywhere except at the guard boundary.
"""

from __future__ import annotations

from enum import Enum

ADMIN_ROLE = "admin"

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({ADMIN_ROLE})

ROLES_TABLE = "user_roles"


class AdminStatus(str, Enum):
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


__all__ = ["ADMIN_ROLE", "ALLOWED_ROLES", "ROLES_TABLE", "AdminStatus"]
