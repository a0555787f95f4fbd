"""
Authentication routes: sign-in, access request (registration) and sign-out.

Why:
    These are the only public pages besides `/health`. They create and drop
    the server-side session; everything else runs behind the access guard.

Notes:
    - This module imports `main` inside functions to reuse the shared session
      store, gateway and page helpers without a circular import.
    - Every POST checks same-origin before touching the backend.
"""

from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from dazzle_admin.approvals import RegistrationError, submit_request, validate_registration
from dazzle_admin.gateway.ports import BackendError

from ..auth_utils import SESSION_COOKIE_NAME, clear_session_cookie, private_no_store, set_session_cookie
from ..components import LoginPage, RegisterPage
from .security import is_same_origin


auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("dazzle.web.auth")


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303, headers=private_no_store())


def _email_redirect_target(request: Request) -> str:
    from dazzle_admin.web import main

    base = main.SETTINGS.site_url or str(request.base_url)
    return base.rstrip("/") + "/admin/login"


@auth_router.get("/admin/login", response_class=HTMLResponse)
async def login_form(request: Request, notice: Optional[str] = None):
    """Render the sign-in form.

    An existing admin session goes straight to the dashboard. A signed-in
    principal without the admin role sees the "no admin access" notice.
    """
    from dazzle_admin.web import main

    session = main.current_session(request)
    if session is not None:
        state = session.state
        if state.is_admin:
            return _redirect("/admin")
        if state.principal is not None and not state.loading and notice is None:
            notice = "not_admin"
    return main.render_page(request, "Sign in", LoginPage().render(), notice=notice, show_nav=False)


@auth_router.post("/admin/login")
async def login_submit(request: Request, email: str = Form(""), password: str = Form("")):
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()
    if not email.strip() or not password:
        page = LoginPage(email=email, error="missing_fields").render()
        return main.render_page(request, "Sign in", page, status_code=400, show_nav=False)

    try:
        connection = await main.get_gateway().sign_in(email=email.strip(), password=password)
    except BackendError as exc:
        logger.info("Sign-in rejected: %s", exc.code)
        page = LoginPage(email=email, error="invalid_credentials").render()
        return main.render_page(request, "Sign in", page, status_code=400, show_nav=False)

    # Rotate: never reuse a session id across sign-ins.
    old_sid = request.cookies.get(SESSION_COOKIE_NAME)
    if old_sid:
        main.SESSION_STORE.delete(old_sid)
    session = await main.SESSION_STORE.create(connection=connection, ttl_seconds=main.SETTINGS.session_ttl)
    logger.info("Session created")
    response = _redirect("/admin")
    set_session_cookie(response, session.session_id, environment=main.SETTINGS.environment, max_age=session.ttl_seconds)
    return response


@auth_router.get("/admin/register", response_class=HTMLResponse)
async def register_form(request: Request):
    from dazzle_admin.web import main

    return main.render_page(request, "Request access", RegisterPage().render(), show_nav=False)


@auth_router.post("/admin/register")
async def register_submit(
    request: Request,
    full_name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
):
    """Create the account and a pending admin request, then send the user to sign-in.

    Validation happens before any backend call. A failed request insert after
    a successful sign-up is reported as `request_not_recorded` (502).
    """
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()

    error = validate_registration(full_name=full_name, email=email, password=password, confirm_password=confirm_password)
    if error:
        page = RegisterPage(full_name=full_name, email=email, error=error).render()
        return main.render_page(request, "Request access", page, status_code=400, show_nav=False)

    try:
        await submit_request(
            main.get_gateway(),
            full_name=full_name,
            email=email,
            password=password,
            redirect_to=_email_redirect_target(request),
        )
    except RegistrationError as exc:
        status_code = 502 if exc.code == "request_not_recorded" else 400
        page = RegisterPage(full_name=full_name, email=email, error=exc.code).render()
        return main.render_page(request, "Request access", page, status_code=status_code, show_nav=False)
    return _redirect("/admin/login?notice=request_submitted")


@auth_router.post("/admin/logout")
async def logout(request: Request):
    """Sign out at the backend, drop the server session and clear the cookie.

    A failing backend sign-out is logged; the local session is dropped anyway.
    """
    from dazzle_admin.web import main

    if not is_same_origin(request):
        return main.csrf_violation()
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    session = main.current_session(request)
    if session is not None:
        try:
            await session.connection.sign_out()
        except BackendError as exc:
            logger.warning("Backend sign-out failed: %s", exc.code)
    if sid:
        main.SESSION_STORE.delete(sid)
    response = _redirect("/admin/login?notice=signed_out")
    clear_session_cookie(response, environment=main.SETTINGS.environment)
    return response
