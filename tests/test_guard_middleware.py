"""
Access guard middleware: redirects, API status codes, the suspended
placeholder and baseline security headers.
"""
from __future__ import annotations

import asyncio

import pytest

from dazzle_admin.gateway import InMemoryConnection
from dazzle_admin.identity_access import stores
from dazzle_admin.web import main

from helpers import admin_client, client, create_admin, open_session, PASSWORD


pytestmark = pytest.mark.anyio("asyncio")


class _SlowRoleLookup(InMemoryConnection):
    """Role lookups wait until the gate opens."""

    def __init__(self, backend, principal, gate: asyncio.Event):
        super().__init__(backend, principal)
        self.gate = gate

    async def select(self, table, **kwargs):
        await self.gate.wait()
        return await super().select(table, **kwargs)


@pytest.mark.anyio
async def test_gated_page_without_session_redirects_to_login():
    async with client() as c:
        r = await c.get("/admin/approvals", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/admin/login"


@pytest.mark.anyio
async def test_unknown_session_cookie_redirects():
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, "not-a-session")
        r = await c.get("/admin", follow_redirects=False)
    assert r.status_code == 302


@pytest.mark.anyio
async def test_api_without_session_is_401_json():
    async with client() as c:
        r = await c.get("/api/admin-requests")
    assert r.status_code == 401
    assert r.json() == {"error": "unauthenticated"}
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_non_admin_is_redirected_and_forbidden_on_api(backend):
    backend.create_account(email="user@example.com", password=PASSWORD)
    session = await open_session(backend, email="user@example.com")
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
        page = await c.get("/admin", follow_redirects=False)
        api = await c.get("/api/admin-requests")
    assert page.status_code == 302
    assert page.headers["location"] == "/admin/login"
    assert api.status_code == 403
    assert api.json() == {"error": "forbidden"}


@pytest.mark.anyio
async def test_failed_role_lookup_denies_access(backend):
    create_admin(backend)
    backend.fail("select", "user_roles")
    session = await open_session(backend)
    assert session.state.is_admin is False
    async with client() as c:
        c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
        r = await c.get("/api/admin-requests")
    assert r.status_code == 403


@pytest.mark.anyio
async def test_unresolved_status_renders_placeholder_not_content(backend):
    admin = create_admin(backend)
    gate = asyncio.Event()
    session = await main.SESSION_STORE.create(connection=_SlowRoleLookup(backend, admin, gate))
    try:
        async with client() as c:
            c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
            page = await c.get("/admin/approvals?status=pending", follow_redirects=False)
            api = await c.get("/api/admin-requests")

            assert page.status_code == 200
            assert 'http-equiv="refresh"' in page.text
            assert "/admin/approvals?status=pending" in page.text
            assert "Admin approvals" not in page.text
            assert page.headers.get("Cache-Control") == "private, no-store"
            assert api.status_code == 503
            assert api.json() == {"error": "authorization_pending"}

            gate.set()
            await session.settled()
            ready = await c.get("/admin/approvals", follow_redirects=False)
            assert ready.status_code == 200
            assert "Admin approvals" in ready.text
    finally:
        gate.set()


@pytest.mark.anyio
async def test_security_headers_present():
    async with client() as c:
        r = await c.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert "default-src 'self'" in r.headers["Content-Security-Policy"]
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "max-age" in r.headers["Strict-Transport-Security"]


@pytest.mark.anyio
async def test_root_redirects_to_dashboard():
    async with client() as c:
        r = await c.get("/", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "/admin"


@pytest.mark.anyio
async def test_gated_pages_are_not_cacheable(backend):
    async with await admin_client(backend) as c:
        r = await c.get("/admin")
    assert r.status_code == 200
    assert r.headers.get("Cache-Control") == "private, no-store"


@pytest.mark.anyio
async def test_guard_starts_pending_counter(backend):
    async with await admin_client(backend) as c:
        await c.get("/admin")
    assert main.PENDING_COUNTER.known is True


@pytest.mark.anyio
async def test_placeholder_refresh_stays_on_site(backend):
    admin = create_admin(backend)
    gate = asyncio.Event()
    session = await main.SESSION_STORE.create(connection=_SlowRoleLookup(backend, admin, gate))
    try:
        async with client() as c:
            c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
            r = await c.get("http://test//evil.example/phish", follow_redirects=False)
            backslash = await c.get("http://test/%5C/evil.example/phish", follow_redirects=False)
        assert r.status_code == 200
        assert 'url=/evil.example/phish"' in r.text
        assert "url=//" not in r.text
        assert 'url=/evil.example/phish"' in backslash.text
    finally:
        gate.set()


@pytest.mark.anyio
async def test_expired_sessions_are_swept_by_later_requests(backend, monkeypatch):
    create_admin(backend)
    sessions = [await open_session(backend) for _ in range(3)]
    assert len(main.SESSION_STORE) == 3

    later = stores._now() + 10_000
    monkeypatch.setattr(stores, "_now", lambda: later)
    async with client() as c:
        await c.get("/health")
        r = await c.get("/admin", follow_redirects=False)
    await asyncio.sleep(0)

    assert r.status_code == 302
    assert len(main.SESSION_STORE) == 0
    for session in sessions:
        assert session.connection.closed is True
        assert session.connection._auth_listeners == []
