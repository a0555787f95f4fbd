"""Shared test helpers: ASGI client, accounts, sessions and seeded requests."""
from __future__ import annotations

from typing import Optional

import httpx
from httpx import ASGITransport

from dazzle_admin.gateway import InMemoryBackend, Principal
from dazzle_admin.identity_access import AdminSession
from dazzle_admin.web import main

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "secret123"


def client(base_url: str = "http://test") -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url=base_url)


def create_admin(backend: InMemoryBackend, email: str = ADMIN_EMAIL, password: str = PASSWORD) -> Principal:
    principal = backend.create_account(email=email, password=password)
    backend.grant_admin(principal.id)
    return principal


async def open_session(backend: InMemoryBackend, email: str = ADMIN_EMAIL, password: str = PASSWORD) -> AdminSession:
    """Sign in and wait for the role lookup to finish."""
    connection = await backend.sign_in(email=email, password=password)
    session = await main.SESSION_STORE.create(connection=connection, ttl_seconds=3600)
    await session.settled()
    return session


async def admin_client(backend: InMemoryBackend) -> httpx.AsyncClient:
    create_admin(backend)
    session = await open_session(backend)
    c = client()
    c.cookies.set(main.SESSION_COOKIE_NAME, session.session_id)
    return c


def seed_request(
    backend: InMemoryBackend,
    *,
    full_name: str,
    email: str,
    status: str = "pending",
    created_at: Optional[str] = None,
) -> dict:
    user = backend.create_account(email=email, password="password-x")
    row = {"user_id": user.id, "full_name": full_name, "email": email, "status": status}
    if created_at:
        row["created_at"] = created_at
    return backend.seed("admin_requests", row)
