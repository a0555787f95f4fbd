"""
Guarded console pages: dashboard, read-only catalogue listings and settings.

All queries run on the signed-in admin's own connection, so the backend's
row-level security applies. Read failures render the generic
"failed to load" notice and never expose backend detail.
"""

from __future__ import annotations

from typing import Dict, Optional
import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from dazzle_admin.approvals.service import MIN_PASSWORD_LENGTH
from dazzle_admin.gateway.ports import BackendError

from ..auth_utils import private_no_store
from ..components import (
    INQUIRY_COLUMNS,
    PRODUCT_COLUMNS,
    DashboardPage,
    DataTable,
    ListingPage,
    SettingsPage,
)
from .security import is_same_origin


admin_router = APIRouter(tags=["Admin"])
logger = logging.getLogger("dazzle.web")

PRODUCTS_TABLE = "products"
INQUIRIES_TABLE = "inquiries"

# badge key -> (table, equality filter)
DASHBOARD_COUNTS = {
    "products": (PRODUCTS_TABLE, None),
    "active_products": (PRODUCTS_TABLE, {"is_active": True}),
    "inquiries": (INQUIRIES_TABLE, None),
    "new_inquiries": (INQUIRIES_TABLE, {"status": "new"}),
}


def _validate_password_change(new_password: str, confirm_password: str) -> Optional[str]:
    if not new_password or not confirm_password:
        return "missing_fields"
    if new_password != confirm_password:
        return "password_mismatch"
    if len(new_password) < MIN_PASSWORD_LENGTH:
        return "password_too_short"
    return None


@admin_router.get("/admin", response_class=HTMLResponse)
async def dashboard(request: Request):
    from dazzle_admin.web import main

    connection = request.state.session.connection
    counts: Dict[str, Optional[int]] = {}
    notice = None
    for key, (table, eq) in DASHBOARD_COUNTS.items():
        try:
            counts[key] = await connection.count(table, eq=eq)
        except BackendError as exc:
            logger.warning("Dashboard count failed (%s): %s", key, exc.code)
            counts[key] = None
            notice = "failed_to_load"
    counter = main.PENDING_COUNTER
    pending = counter.value if counter.known else None
    return main.render_page(request, "Dashboard", DashboardPage(counts, pending).render(), notice=notice)


async def _listing(request: Request, *, table: str, title: str, columns, empty_text: str) -> HTMLResponse:
    from dazzle_admin.web import main

    notice = None
    try:
        rows = await request.state.session.connection.select(table, order_by="created_at", descending=True)
    except BackendError as exc:
        logger.warning("Listing %s failed: %s", table, exc.code)
        rows = []
        notice = "failed_to_load"
    page = ListingPage(title, DataTable(columns, rows, empty_text=empty_text))
    return main.render_page(request, title, page.render(), notice=notice)


@admin_router.get("/admin/products", response_class=HTMLResponse)
async def products(request: Request):
    return await _listing(request, table=PRODUCTS_TABLE, title="Products", columns=PRODUCT_COLUMNS, empty_text="No products yet.")


@admin_router.get("/admin/inquiries", response_class=HTMLResponse)
async def inquiries(request: Request):
    return await _listing(
        request, table=INQUIRIES_TABLE, title="Inquiries", columns=INQUIRY_COLUMNS, empty_text="No inquiries yet."
    )


def _account_details(request: Request) -> Dict[str, Optional[str]]:
    principal = request.state.session.state.principal
    return {
        "email": principal.email,
        "created_at": principal.created_at,
        "last_sign_in_at": principal.last_sign_in_at,
    }


@admin_router.get("/admin/settings", response_class=HTMLResponse)
async def settings_page(request: Request, notice: Optional[str] = None):
    from dazzle_admin.web import main

    return main.render_page(request, "Settings", SettingsPage(_account_details(request)).render(), notice=notice)


@admin_router.post("/admin/settings")
async def update_password(request: Request, new_password: str = Form(""), confirm_password: str = Form("")):
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()
    error = _validate_password_change(new_password, confirm_password)
    if error:
        page = SettingsPage(_account_details(request), error=error).render()
        return main.render_page(request, "Settings", page, status_code=400)
    try:
        await request.state.session.connection.update_password(new_password)
    except BackendError as exc:
        logger.error("Password update failed: %s", exc.code)
        return RedirectResponse("/admin/settings?notice=password_update_failed", status_code=303, headers=private_no_store())
    logger.info("Password updated for %s", request.state.user["id"])
    return RedirectResponse("/admin/settings?notice=password_updated", status_code=303, headers=private_no_store())
