"""
Shared session-cookie and response-header helpers.

Why:
    Login, logout and the guard middleware all touch the session cookie.
    Keeping the cookie policy in one place avoids drift between them.

Design:
    `cookie_opts` is pure and framework-agnostic; the setters operate on any
    Starlette response.
"""

from __future__ import annotations

from starlette.responses import Response

SESSION_COOKIE_NAME = "dazzle_session"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    SameSite=Lax keeps the cookie on top-level navigations (e.g. following the
    confirmation link in a sign-up email) while blocking cross-site POSTs.
    """
    return {"secure": True, "samesite": "lax"}


def private_no_store() -> dict:
    return {"Cache-Control": "private, no-store"}


def set_session_cookie(response: Response, value: str, *, environment: str, max_age: int | None = None) -> None:
    opts = cookie_opts(environment)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


def clear_session_cookie(response: Response, *, environment: str) -> None:
    opts = cookie_opts(environment)
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
    )
