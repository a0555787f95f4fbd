"""Session state, role resolution and the admin access guard."""

from .domain import ADMIN_ROLE, ALLOWED_ROLES, AdminStatus
from .guard import AccessGuard, GuardDecision
from .stores import AdminSession, SessionState, SessionStore, resolve_admin_status

__all__ = [
    "ADMIN_ROLE",
    "ALLOWED_ROLES",
    "AccessGuard",
    "AdminSession",
    "AdminStatus",
    "GuardDecision",
    "SessionState",
    "SessionStore",
    "resolve_admin_status",
]
