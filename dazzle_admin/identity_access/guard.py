"""
Access guard for admin-only views.

Decision table for a session snapshot (required role "admin"):

    no session / snapshot           -> REDIRECT
    loading (lookup in flight)      -> SUSPEND
    no principal                    -> REDIRECT
    admin granted                   -> ALLOW
    anything else (denied)          -> REDIRECT

SUSPEND renders a neutral placeholder: neither the guarded content nor a
redirect. There is no timeout; a lookup that never finishes keeps the guard
suspended.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .domain import ADMIN_ROLE, ALLOWED_ROLES, AdminStatus
from .stores import SessionState


class GuardDecision(str, Enum):
    ALLOW = "allow"
    SUSPEND = "suspend"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class AccessGuard:
    required_role: str = ADMIN_ROLE
    login_path: str = "/admin/login"

    def __post_init__(self) -> None:
        if self.required_role not in ALLOWED_ROLES:
            raise ValueError(f"unsupported role: {self.required_role}")

    def evaluate(self, state: Optional[SessionState]) -> GuardDecision:
        if state is None:
            return GuardDecision.REDIRECT
        if state.loading:
            return GuardDecision.SUSPEND
        if state.principal is None:
            return GuardDecision.REDIRECT
        if state.admin is AdminStatus.GRANTED:
            return GuardDecision.ALLOW
        return GuardDecision.REDIRECT


__all__ = ["AccessGuard", "GuardDecision"]
