"""
Admin request domain: states, transitions and display filters.

States:
    pending -> approved   (terminal)
    pending -> rejected   (terminal)

Nothing leaves a terminal state; there is no re-review and no revoke path.
The filters are pure functions over an already-fetched list and have no
persistence effect.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

REQUESTS_TABLE = "admin_requests"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED})

# Status filter value that disables status filtering.
ALL_STATUSES = "all"


class ApprovalError(Exception):
    code = "approval_error"


class InvalidTransition(ApprovalError):
    code = "invalid_transition"


class ApprovalFailed(ApprovalError):
    """A backend write failed; whatever landed before the failure stays."""

    code = "write_failed"


class RegistrationError(ApprovalError):
    code = "registration_failed"

    def __init__(self, code: str, detail: str | None = None) -> None:
        super().__init__(detail or code)
        self.code = code
        self.detail = detail


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return current is RequestStatus.PENDING and target in TERMINAL_STATUSES


@dataclass(frozen=True)
class AdminRequest:
    id: str
    user_id: str
    full_name: str
    email: str
    status: RequestStatus = RequestStatus.PENDING
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AdminRequest":
        """Build from a backend row; unknown statuses raise ValueError."""
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            full_name=str(row.get("full_name") or ""),
            email=str(row.get("email") or ""),
            status=RequestStatus(row.get("status") or RequestStatus.PENDING.value),
            reviewed_by=row.get("reviewed_by"),
            reviewed_at=row.get("reviewed_at"),
            rejection_reason=row.get("rejection_reason"),
            created_at=str(row.get("created_at") or ""),
        )

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "status": self.status.value,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at,
            "rejection_reason": self.rejection_reason,
            "created_at": self.created_at,
        }


def filter_requests(
    requests: Iterable[AdminRequest],
    *,
    query: str = "",
    status: str = ALL_STATUSES,
) -> List[AdminRequest]:
    """Case-insensitive substring match on name/email plus exact status match."""
    needle = (query or "").strip().lower()
    wanted = (status or ALL_STATUSES).strip().lower()
    out: List[AdminRequest] = []
    for request in requests:
        if needle and needle not in request.full_name.lower() and needle not in request.email.lower():
            continue
        if wanted != ALL_STATUSES and request.status.value != wanted:
            continue
        out.append(request)
    return out


def count_pending(requests: Iterable[AdminRequest]) -> int:
    return sum(1 for r in requests if r.is_pending)


def normalize_reason(reason: Optional[str]) -> Optional[str]:
    """Empty or whitespace-only reasons are stored as null."""
    text = (reason or "").strip()
    return text or None


__all__ = [
    "ALL_STATUSES",
    "AdminRequest",
    "ApprovalError",
    "ApprovalFailed",
    "InvalidTransition",
    "REQUESTS_TABLE",
    "RegistrationError",
    "RequestStatus",
    "TERMINAL_STATUSES",
    "can_transition",
    "count_pending",
    "filter_requests",
    "normalize_reason",
]
