"""
Flash-style notices passed through the `?notice=` query parameter.

Only codes listed in `NOTICES` render; anything else in the query string is
ignored, so the parameter cannot inject text into the page.
"""

from typing import Dict, Optional, Tuple

from .base import Component


# code -> (level, message)
NOTICES: Dict[str, Tuple[str, str]] = {
    "request_submitted": ("success", "Your request was submitted. An administrator will review it."),
    "signed_out": ("info", "You have been signed out."),
    "not_admin": ("error", "This account does not have admin access."),
    "request_approved": ("success", "Request approved. The user now has admin access."),
    "request_rejected": ("success", "Request rejected."),
    "already_reviewed": ("error", "This request has already been reviewed."),
    "approve_failed": ("error", "Failed to approve the request. Please try again."),
    "reject_failed": ("error", "Failed to reject the request. Please try again."),
    "failed_to_load": ("error", "Failed to load data. Please refresh the page."),
    "password_updated": ("success", "Your password has been updated."),
    "password_update_failed": ("error", "Failed to update the password."),
}

# Validation messages shared by the registration and settings forms.
FORM_ERRORS: Dict[str, str] = {
    "missing_fields": "Please fill in all fields.",
    "password_mismatch": "Passwords do not match.",
    "password_too_short": "Password must be at least 6 characters.",
    "invalid_credentials": "Invalid email or password.",
    "sign_up_failed": "Registration failed. The email may already be registered.",
    "request_not_recorded": "Your account was created, but the admin request could not be recorded. Please contact an administrator.",
}


class Notice(Component):
    def __init__(self, code: Optional[str] = None, *, level: str = "info", message: Optional[str] = None):
        known = NOTICES.get(code or "")
        if known and message is None:
            level, message = known
        self.level = level
        self.message = message

    def render(self) -> str:
        if not self.message:
            return ""
        role = "alert" if self.level == "error" else "status"
        return (
            f'<div class="{self.classes("notice", f"notice-{self.level}")}" role="{role}">'
            f"{self.escape(self.message)}</div>"
        )


def form_error(code: Optional[str]) -> str:
    if not code:
        return ""
    return Notice(level="error", message=FORM_ERRORS.get(code, "Something went wrong.")).render()
