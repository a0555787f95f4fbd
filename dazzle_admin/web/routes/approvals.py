"""
Approval queue routes: the server-rendered page and its JSON API.

Why:
    Reviewers work on the HTML page (forms + PRG redirects); the JSON API
    exposes the same operations for scripted clients and live badges.

Error mapping:
    - read failure            -> notice `failed_to_load` / 502 `failed_to_load`
    - unknown request id      -> 404
    - already reviewed        -> notice `already_reviewed` / 409 `invalid_transition`
    - write failure           -> notice `approve_failed|reject_failed` / 502
    - cross-origin POST       -> 403 `csrf_violation`
"""

from __future__ import annotations

from typing import List, Optional, Tuple
import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel

from dazzle_admin.approvals import (
    ALL_STATUSES,
    AdminRequest,
    ApprovalFailed,
    ApprovalService,
    InvalidTransition,
    filter_requests,
)
from dazzle_admin.approvals.domain import RequestStatus, count_pending
from dazzle_admin.gateway.ports import BackendError

from ..auth_utils import private_no_store
from ..components import ApprovalsPage, normalize_status_filter
from .security import is_same_origin


approvals_router = APIRouter(tags=["Approvals"])
logger = logging.getLogger("dazzle.web")

VALID_STATUS_FILTERS = frozenset({ALL_STATUSES} | {s.value for s in RequestStatus})


class RejectBody(BaseModel):
    reason: Optional[str] = None


def _service(request: Request) -> ApprovalService:
    return ApprovalService(request.state.session.connection)


def _reviewer(request: Request):
    return request.state.session.state.principal


def _back_to_queue(notice: str) -> RedirectResponse:
    return RedirectResponse(url=f"/admin/approvals?notice={notice}", status_code=303, headers=private_no_store())


async def _load_requests(request: Request) -> Tuple[List[AdminRequest], bool]:
    try:
        return await _service(request).list_requests(), False
    except BackendError as exc:
        logger.warning("Loading admin requests failed: %s", exc.code)
        return [], True


# --- Server-rendered page -------------------------------------------------------------

@approvals_router.get("/admin/approvals", response_class=HTMLResponse)
async def approvals_page(request: Request, q: str = "", status: str = ALL_STATUSES, notice: Optional[str] = None):
    from dazzle_admin.web import main

    status = normalize_status_filter(status)
    requests, failed = await _load_requests(request)
    if failed:
        notice = "failed_to_load"
    page = ApprovalsPage(
        filter_requests(requests, query=q, status=status),
        query=q,
        status=status,
        total=len(requests),
        pending=count_pending(requests),
        load_failed=failed,
    )
    return main.render_page(request, "Approvals", page.render(), notice=notice)


async def _find(request: Request, request_id: str) -> Optional[AdminRequest]:
    """Fetch one request; BackendError propagates."""
    return await _service(request).get_request(request_id)


@approvals_router.post("/admin/approvals/{request_id}/approve")
async def approve_form(request: Request, request_id: str):
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()
    try:
        target = await _find(request, request_id)
    except BackendError as exc:
        logger.warning("Loading admin request failed: %s", exc.code)
        return _back_to_queue("approve_failed")
    if target is None:
        return main.render_page(request, "Not found", "<h1>Request not found</h1>", status_code=404)
    try:
        await _service(request).approve(target, _reviewer(request))
    except InvalidTransition:
        return _back_to_queue("already_reviewed")
    except ApprovalFailed:
        return _back_to_queue("approve_failed")
    return _back_to_queue("request_approved")


@approvals_router.post("/admin/approvals/{request_id}/reject")
async def reject_form(request: Request, request_id: str, reason: str = Form("")):
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()
    try:
        target = await _find(request, request_id)
    except BackendError as exc:
        logger.warning("Loading admin request failed: %s", exc.code)
        return _back_to_queue("reject_failed")
    if target is None:
        return main.render_page(request, "Not found", "<h1>Request not found</h1>", status_code=404)
    try:
        await _service(request).reject(target, _reviewer(request), reason)
    except InvalidTransition:
        return _back_to_queue("already_reviewed")
    except ApprovalFailed:
        return _back_to_queue("reject_failed")
    return _back_to_queue("request_rejected")


# --- JSON API -----------------------------------------------------------------------------

@approvals_router.get("/api/admin-requests")
async def list_admin_requests(request: Request, q: str = "", status: str = ALL_STATUSES):
    """List requests (newest first) filtered by text and status.

    Query:
        q: case-insensitive substring over name and email
        status: `all` | `pending` | `approved` | `rejected`
    """
    from dazzle_admin.web import main

    status = (status or ALL_STATUSES).strip().lower()
    if status not in VALID_STATUS_FILTERS:
        return main.json_error("invalid_status", 400)
    requests, failed = await _load_requests(request)
    if failed:
        return main.json_error("failed_to_load", 502)
    items = filter_requests(requests, query=q, status=status)
    body = {"items": [r.to_dict() for r in items], "total": len(requests), "pending": count_pending(requests)}
    return JSONResponse(body, headers=private_no_store())


@approvals_router.get("/api/admin-requests/pending-count")
async def pending_count(request: Request):
    from dazzle_admin.web import main

    counter = main.PENDING_COUNTER
    if not counter.known:
        await counter.refresh()
    if not counter.known:
        return main.json_error("failed_to_load", 502)
    return JSONResponse({"count": counter.value}, headers=private_no_store())


async def _api_target(request: Request, request_id: str):
    """Return (target, error_response)."""
    from dazzle_admin.web import main

    try:
        target = await _find(request, request_id)
    except BackendError as exc:
        logger.warning("Loading admin request failed: %s", exc.code)
        return None, main.json_error("failed_to_load", 502)
    if target is None:
        return None, main.json_error("not_found", 404)
    return target, None


@approvals_router.post("/api/admin-requests/{request_id}/approve")
async def approve_api(request: Request, request_id: str):
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()
    target, error = await _api_target(request, request_id)
    if error is not None:
        return error
    try:
        updated = await _service(request).approve(target, _reviewer(request))
    except InvalidTransition:
        return main.json_error("invalid_transition", 409)
    except ApprovalFailed:
        return main.json_error("approve_failed", 502)
    return JSONResponse({"request": updated.to_dict()}, headers=private_no_store())


@approvals_router.post("/api/admin-requests/{request_id}/reject")
async def reject_api(request: Request, request_id: str, body: Optional[RejectBody] = None):
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()
    target, error = await _api_target(request, request_id)
    if error is not None:
        return error
    reason = body.reason if body is not None else None
    try:
        updated = await _service(request).reject(target, _reviewer(request), reason)
    except InvalidTransition:
        return main.json_error("invalid_transition", 409)
    except ApprovalFailed:
        return main.json_error("reject_failed", 502)
    return JSONResponse({"request": updated.to_dict()}, headers=private_no_store())
