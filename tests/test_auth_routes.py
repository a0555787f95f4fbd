"""
Sign-in, access request (registration) and sign-out flows.
"""
from __future__ import annotations

import logging

import pytest

from dazzle_admin.web import main

from helpers import ADMIN_EMAIL, PASSWORD, client, create_admin, open_session


pytestmark = pytest.mark.anyio("asyncio")

EVIL_ORIGIN = {"Origin": "https://evil.example"}


def _registration(**overrides):
    data = {
        "full_name": "Ann Example",
        "email": "ann@example.com",
        "password": "secret1",
        "confirm_password": "secret1",
    }
    data.update(overrides)
    return data


# --- Sign-in -----------------------------------------------------------------------


@pytest.mark.anyio
async def test_login_page_renders_form():
    async with client() as c:
        r = await c.get("/admin/login")
    assert r.status_code == 200
    assert 'action="/admin/login"' in r.text
    assert 'name="password"' in r.text
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_login_sets_hardened_cookie_and_opens_dashboard(backend):
    create_admin(backend)
    async with client("https://test") as c:
        r = await c.post("/admin/login", data={"email": ADMIN_EMAIL, "password": PASSWORD}, follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["location"] == "/admin"
        set_cookie = r.headers["set-cookie"]
        assert set_cookie.startswith(f"{main.SESSION_COOKIE_NAME}=")
        assert "HttpOnly" in set_cookie
        assert "Secure" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

        session = main.SESSION_STORE.get(r.cookies[main.SESSION_COOKIE_NAME])
        assert session is not None
        await session.settled()

        dash = await c.get("/admin")
        assert dash.status_code == 200
        assert "Dashboard" in dash.text
        assert ADMIN_EMAIL in dash.text


@pytest.mark.anyio
async def test_login_with_wrong_password_is_rejected(backend):
    create_admin(backend)
    async with client() as c:
        r = await c.post("/admin/login", data={"email": ADMIN_EMAIL, "password": "wrong-pass"})
    assert r.status_code == 400
    assert "Invalid email or password." in r.text
    assert len(main.SESSION_STORE) == 0


@pytest.mark.anyio
async def test_login_missing_fields(backend):
    async with client() as c:
        r = await c.post("/admin/login", data={"email": "", "password": ""})
    assert r.status_code == 400
    assert "Please fill in all fields." in r.text


@pytest.mark.anyio
async def test_login_cross_origin_is_blocked(backend):
    create_admin(backend)
    async with client() as c:
        r = await c.post("/admin/login", data={"email": ADMIN_EMAIL, "password": PASSWORD}, headers=EVIL_ORIGIN)
    assert r.status_code == 403
    assert r.json() == {"error": "csrf_violation"}
    assert len(main.SESSION_STORE) == 0


@pytest.mark.anyio
async def test_login_page_sends_admins_to_dashboard(backend):
    create_admin(backend)
    session = await open_session(backend)
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
        r = await c.get("/admin/login", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/admin"


@pytest.mark.anyio
async def test_login_page_tells_non_admins_they_lack_access(backend):
    backend.create_account(email="user@example.com", password=PASSWORD)
    session = await open_session(backend, email="user@example.com")
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
        r = await c.get("/admin/login")
    assert r.status_code == 200
    assert "does not have admin access" in r.text


@pytest.mark.anyio
async def test_unknown_notice_codes_are_ignored():
    async with client() as c:
        r = await c.get("/admin/login", params={"notice": "<script>alert(1)</script>"})
    assert r.status_code == 200
    assert "<script>alert(1)</script>" not in r.text


# --- Registration ------------------------------------------------------------------------


@pytest.mark.anyio
async def test_register_creates_account_and_pending_request(backend):
    async with client() as c:
        r = await c.post("/admin/register", data=_registration(), follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/admin/login?notice=request_submitted"

    account = backend.accounts["ann@example.com"]
    assert account.metadata == {"full_name": "Ann Example"}
    rows = backend.rows("admin_requests", user_id=account.principal.id)
    assert len(rows) == 1
    assert rows[0]["status"] == "pending"
    assert rows[0]["full_name"] == "Ann Example"
    # Registration never opens a console session.
    assert len(main.SESSION_STORE) == 0


@pytest.mark.anyio
async def test_register_notice_shown_on_login_page():
    async with client() as c:
        r = await c.get("/admin/login?notice=request_submitted")
    assert "Your request was submitted" in r.text


@pytest.mark.anyio
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"full_name": ""}, "Please fill in all fields."),
        ({"confirm_password": "secret2"}, "Passwords do not match."),
        ({"password": "12345", "confirm_password": "12345"}, "Password must be at least 6 characters."),
    ],
)
async def test_register_validation_happens_before_backend(backend, overrides, message):
    async with client() as c:
        r = await c.post("/admin/register", data=_registration(**overrides))
    assert r.status_code == 400
    assert message in r.text
    assert backend.accounts == {}
    assert not backend.rows("admin_requests")


@pytest.mark.anyio
async def test_register_keeps_typed_values_but_not_passwords(backend):
    async with client() as c:
        r = await c.post("/admin/register", data=_registration(confirm_password="different"))
    assert 'value="Ann Example"' in r.text
    assert 'value="ann@example.com"' in r.text
    assert "secret1" not in r.text


@pytest.mark.anyio
async def test_register_duplicate_email_fails(backend):
    backend.create_account(email="ann@example.com", password="secret1")
    async with client() as c:
        r = await c.post("/admin/register", data=_registration())
    assert r.status_code == 400
    assert "Registration failed" in r.text
    assert not backend.rows("admin_requests")


@pytest.mark.anyio
async def test_register_request_insert_failure_reports_orphan(backend, caplog):
    backend.fail("insert", "admin_requests")
    with caplog.at_level(logging.ERROR, logger="dazzle.approvals"):
        async with client() as c:
            r = await c.post("/admin/register", data=_registration())
    assert r.status_code == 502
    assert "could not be recorded" in r.text
    orphan = backend.accounts["ann@example.com"].principal
    assert orphan.id in caplog.text
    assert not backend.rows("admin_requests")


@pytest.mark.anyio
async def test_register_cross_origin_is_blocked(backend):
    async with client() as c:
        r = await c.post("/admin/register", data=_registration(), headers=EVIL_ORIGIN)
    assert r.status_code == 403
    assert backend.accounts == {}


# --- Sign-out ------------------------------------------------------------------------------


@pytest.mark.anyio
async def test_logout_drops_session_and_clears_cookie(backend):
    create_admin(backend)
    session = await open_session(backend)
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
        r = await c.post("/admin/logout", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/admin/login?notice=signed_out"
    assert main.SESSION_STORE.get(session.session_id) is None
    set_cookie = r.headers["set-cookie"]
    assert set_cookie.startswith(f"{main.SESSION_COOKIE_NAME}=")
    assert "Max-Age=0" in set_cookie
    assert session.connection.principal is None


@pytest.mark.anyio
async def test_logout_backend_failure_still_drops_session(backend):
    create_admin(backend)
    session = await open_session(backend)
    backend.fail("sign_out")
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
        r = await c.post("/admin/logout", follow_redirects=False)
    assert r.status_code == 303
    assert main.SESSION_STORE.get(session.session_id) is None


@pytest.mark.anyio
async def test_logout_without_session_is_harmless():
    async with client() as c:
        r = await c.post("/admin/logout", follow_redirects=False)
    assert r.status_code == 303
