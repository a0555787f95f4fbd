"""
Approval workflow use cases: submit, list, approve, reject.

Why:
    Routes stay thin; the transitions, preconditions and error mapping live
    here and are unit-tested against the in-memory backend.

Atomicity:
    Approve is a single call to the `approve_admin_request` procedure, which
    inserts the role grant and stamps the request in one transaction. The
    console never sequences the two writes itself.

Registration (submit) stays two independent writes: sign-up, then the request
insert. A failed insert leaves an orphaned account; it is logged with the
principal id for manual cleanup.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
import logging

from dazzle_admin.gateway.ports import BackendError, BackendGatewayProtocol, Principal, UserConnectionProtocol

from .domain import (
    AdminRequest,
    ApprovalFailed,
    InvalidTransition,
    REQUESTS_TABLE,
    RegistrationError,
    RequestStatus,
    can_transition,
    normalize_reason,
)


logger = logging.getLogger("dazzle.approvals")

APPROVE_FUNCTION = "approve_admin_request"
MIN_PASSWORD_LENGTH = 6


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def validate_registration(*, full_name: str, email: str, password: str, confirm_password: str) -> Optional[str]:
    """Return an error code for invalid registration input, or None."""
    if not (full_name or "").strip() or not (email or "").strip() or not (password or "").strip():
        return "missing_fields"
    if password != confirm_password:
        return "password_mismatch"
    if len(password) < MIN_PASSWORD_LENGTH:
        return "password_too_short"
    return None


async def submit_request(
    gateway: BackendGatewayProtocol,
    *,
    full_name: str,
    email: str,
    password: str,
    redirect_to: str | None = None,
) -> AdminRequest:
    """Create the account, then record a pending admin request for it."""
    full_name = full_name.strip()
    email = email.strip()
    try:
        principal = await gateway.sign_up(
            email=email,
            password=password,
            metadata={"full_name": full_name},
            redirect_to=redirect_to,
        )
    except BackendError as exc:
        logger.warning("Sign-up rejected: %s", exc.code)
        raise RegistrationError("sign_up_failed", exc.detail) from exc

    try:
        row = await gateway.insert(
            REQUESTS_TABLE,
            {"user_id": principal.id, "full_name": full_name, "email": email, "status": RequestStatus.PENDING.value},
        )
    except BackendError as exc:
        # No compensating rollback: the account exists without a request.
        logger.error("Admin request not recorded; orphaned account %s: %s", principal.id, exc.code)
        raise RegistrationError("request_not_recorded") from exc
    logger.info("Admin request submitted for %s", principal.id)
    return AdminRequest.from_row(row)


def _check_transition(request: AdminRequest, target: RequestStatus) -> None:
    if not can_transition(request.status, target):
        raise InvalidTransition(f"request {request.id} is {request.status.value}")


class ApprovalService:
    """Reviewer-side operations, bound to the reviewer's connection."""

    def __init__(self, connection: UserConnectionProtocol) -> None:
        self._connection = connection

    async def list_requests(self) -> List[AdminRequest]:
        """Newest first. BackendError propagates to the caller (read error)."""
        rows = await self._connection.select(REQUESTS_TABLE, order_by="created_at", descending=True)
        return [AdminRequest.from_row(row) for row in rows]

    async def get_request(self, request_id: str) -> Optional[AdminRequest]:
        rows = await self._connection.select(REQUESTS_TABLE, eq={"id": request_id}, limit=1)
        return AdminRequest.from_row(rows[0]) if rows else None

    async def approve(self, request: AdminRequest, reviewer: Principal) -> AdminRequest:
        _check_transition(request, RequestStatus.APPROVED)
        try:
            row = await self._connection.rpc(APPROVE_FUNCTION, {"request_id": request.id, "reviewer_id": reviewer.id})
        except BackendError as exc:
            if exc.code == "invalid_transition":
                raise InvalidTransition(f"request {request.id} was already reviewed") from exc
            logger.error("Approve failed for request %s: %s", request.id, exc.code)
            raise ApprovalFailed(exc.code) from exc
        logger.info("Admin request %s approved by %s", request.id, reviewer.id)
        if not row:
            return AdminRequest.from_row(
                {**request.to_dict(), "status": RequestStatus.APPROVED.value, "reviewed_by": reviewer.id, "reviewed_at": _now_iso()}
            )
        return AdminRequest.from_row(row)

    async def reject(self, request: AdminRequest, reviewer: Principal, reason: Optional[str] = None) -> AdminRequest:
        _check_transition(request, RequestStatus.REJECTED)
        values = {
            "status": RequestStatus.REJECTED.value,
            "reviewed_by": reviewer.id,
            "reviewed_at": _now_iso(),
            "rejection_reason": normalize_reason(reason),
        }
        try:
            # Filtering on pending keeps a concurrent review from being overwritten.
            rows = await self._connection.update(
                REQUESTS_TABLE,
                values,
                eq={"id": request.id, "status": RequestStatus.PENDING.value},
            )
        except BackendError as exc:
            logger.error("Reject failed for request %s: %s", request.id, exc.code)
            raise ApprovalFailed(exc.code) from exc
        if not rows:
            raise InvalidTransition(f"request {request.id} was already reviewed")
        logger.info("Admin request %s rejected by %s", request.id, reviewer.id)
        return AdminRequest.from_row(rows[0])


__all__ = ["APPROVE_FUNCTION", "ApprovalService", "MIN_PASSWORD_LENGTH", "submit_request", "validate_registration"]
