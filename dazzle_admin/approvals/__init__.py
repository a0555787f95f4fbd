"""Admin access request workflow."""

from .domain import (
    ALL_STATUSES,
    AdminRequest,
    ApprovalError,
    ApprovalFailed,
    InvalidTransition,
    RegistrationError,
    RequestStatus,
    filter_requests,
)
from .pending import PendingRequestCounter
from .service import ApprovalService, submit_request, validate_registration

__all__ = [
    "ALL_STATUSES",
    "AdminRequest",
    "ApprovalError",
    "ApprovalFailed",
    "ApprovalService",
    "InvalidTransition",
    "PendingRequestCounter",
    "RegistrationError",
    "RequestStatus",
    "filter_requests",
    "submit_request",
    "validate_registration",
]
