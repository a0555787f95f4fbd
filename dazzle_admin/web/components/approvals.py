"""
Approval queue components: filter bar, status badges and request cards.

Only pending requests get approve/reject forms; reviewed requests show when
they were reviewed and, for rejections, the stored reason.
"""

from typing import List, Optional, Sequence

from dazzle_admin.approvals.domain import ALL_STATUSES, AdminRequest, RequestStatus

from .base import Component, format_timestamp
from .forms import SubmitButton, TextAreaField


STATUS_LABELS = {
    RequestStatus.PENDING: "Pending",
    RequestStatus.APPROVED: "Approved",
    RequestStatus.REJECTED: "Rejected",
}

STATUS_OPTIONS = [(ALL_STATUSES, "All")] + [(s.value, label) for s, label in STATUS_LABELS.items()]


class StatusBadge(Component):
    def __init__(self, status: RequestStatus):
        self.status = status

    def render(self) -> str:
        return (
            f'<span class="{self.classes("badge", f"badge-{self.status.value}")}">'
            f"{self.escape(STATUS_LABELS[self.status])}</span>"
        )


class FilterBar(Component):
    """GET form; filtering happens server-side on every render."""

    def __init__(self, query: str = "", status: str = ALL_STATUSES):
        self.query = query
        self.status = status

    def render(self) -> str:
        options = "".join(
            f"<option {self.attributes(value=value, selected=value == self.status)}>{self.escape(label)}</option>"
            for value, label in STATUS_OPTIONS
        )
        search_attrs = self.attributes(
            type="search",
            name="q",
            id="q",
            value=self.query,
            placeholder="Search by name or email",
            class_="form-input",
        )
        return f"""
        <form method="get" action="/admin/approvals" class="filter-bar" role="search">
            <label for="q" class="sr-only">Search</label>
            <input {search_attrs}>
            <label for="status" class="sr-only">Status</label>
            <select id="status" name="status" class="form-input">{options}</select>
            {SubmitButton("Filter", variant="secondary").render()}
        </form>"""


class RequestCard(Component):
    def __init__(self, request: AdminRequest):
        self.request = request

    def render(self) -> str:
        r = self.request
        details = [f"<dt>Requested</dt><dd>{self.escape(format_timestamp(r.created_at))}</dd>"]
        if r.reviewed_at:
            details.append(f"<dt>Reviewed</dt><dd>{self.escape(format_timestamp(r.reviewed_at))}</dd>")
        if r.status is RequestStatus.REJECTED and r.rejection_reason:
            details.append(f"<dt>Reason</dt><dd>{self.escape(r.rejection_reason)}</dd>")
        actions = self._render_actions() if r.is_pending else ""
        return f"""
        <article class="request-card" id="request-{self.escape(r.id)}" data-status="{self.escape(r.status.value)}">
            <header class="request-card-header">
                <div>
                    <h3 class="request-name">{self.escape(r.full_name)}</h3>
                    <p class="request-email text-muted">{self.escape(r.email)}</p>
                </div>
                {StatusBadge(r.status).render()}
            </header>
            <dl class="request-details">{''.join(details)}</dl>
            {actions}
        </article>"""

    def _render_actions(self) -> str:
        rid = self.escape(self.request.id)
        reason = TextAreaField(f"reason-{self.request.id}", "Rejection reason (optional)").render(rows=2, name="reason")
        return f"""
            <div class="request-actions">
                <form method="post" action="/admin/approvals/{rid}/approve" class="inline-form">
                    {SubmitButton("Approve").render()}
                </form>
                <form method="post" action="/admin/approvals/{rid}/reject" class="inline-form reject-form">
                    {reason}
                    {SubmitButton("Reject", variant="danger").render()}
                </form>
            </div>"""


class ApprovalsPage(Component):
    def __init__(
        self,
        requests: Sequence[AdminRequest],
        *,
        query: str = "",
        status: str = ALL_STATUSES,
        total: int = 0,
        pending: int = 0,
        load_failed: bool = False,
    ):
        self.requests: List[AdminRequest] = list(requests)
        self.query = query
        self.status = status
        self.total = total
        self.pending = pending
        self.load_failed = load_failed

    def render(self) -> str:
        if self.load_failed:
            body = ""
        elif not self.requests:
            empty = "No requests match your filters." if self.total else "No admin requests yet."
            body = f'<p class="empty-state">{self.escape(empty)}</p>'
        else:
            body = "".join(RequestCard(r).render() for r in self.requests)
        return f"""
        <h1>Admin approvals</h1>
        <p class="text-muted">{self.pending} pending of {self.total} total</p>
        {FilterBar(self.query, self.status).render()}
        <div class="request-list">{body}</div>"""


def normalize_status_filter(raw: Optional[str]) -> str:
    """Map a query-string status onto a known filter value (default: all)."""
    value = (raw or "").strip().lower()
    if value in {s.value for s in RequestStatus}:
        return value
    return ALL_STATUSES
