"""
Shared web security helpers (FastAPI-agnostic utilities for routes).

Contains the same-origin check used by every state-changing route (sign-in,
sign-out, approvals, settings). Keeping a single implementation avoids drift.
"""
from __future__ import annotations

from typing import Tuple
from urllib.parse import urlparse
import os

from fastapi import Request


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> Tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    port = p.port if p.port is not None else _default_port(scheme)
    return scheme, p.hostname.lower(), int(port)


def _server_origin(request: Request) -> Tuple[str, str, int]:
    """Origin of this server; X-Forwarded-* only when CONSOLE_TRUST_PROXY=true."""
    trust_proxy = (os.getenv("CONSOLE_TRUST_PROXY", "false") or "").lower() == "true"
    if trust_proxy:
        xf_proto = (request.headers.get("x-forwarded-proto") or request.url.scheme or "").split(",")[0].strip()
        xf_host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
        scheme = (xf_proto or request.url.scheme or "http").lower()
        if ":" in xf_host:
            host_only, port_str = xf_host.rsplit(":", 1)
            try:
                port = int(port_str)
            except ValueError:
                port = _default_port(scheme)
            return scheme, host_only.lower(), port
        host = (xf_host or request.url.hostname or "").lower()
        return scheme, host, _default_port(scheme)

    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port) if request.url.port else _default_port(scheme)
    return scheme, host, port


def is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    """
    try:
        server = _server_origin(request)
        origin_val = request.headers.get("origin")
        if origin_val:
            return _parse_origin(origin_val) == server
        referer_val = request.headers.get("referer")
        if referer_val:
            return _parse_origin(referer_val) == server
        return True
    except ValueError:
        return False
