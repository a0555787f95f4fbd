"""
Pytest configuration for the console tests.

Why: Force AnyIO to use the asyncio backend, and give every test a fresh
in-memory backend and session store so state never leaks between tests.
"""
import pytest

from dazzle_admin.gateway import InMemoryBackend
from dazzle_admin.identity_access import SessionStore
from dazzle_admin.web import main


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_console_env(monkeypatch: pytest.MonkeyPatch):
    """Keep env-driven toggles out of unrelated tests; tests opt in explicitly."""
    for var in ("CONSOLE_ENV", "CONSOLE_TRUST_PROXY", "CONSOLE_SITE_URL", "CONSOLE_SESSION_TTL"):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def backend(monkeypatch: pytest.MonkeyPatch) -> InMemoryBackend:
    """Fresh in-memory backend wired into the app, plus an empty session store."""
    fresh = InMemoryBackend()
    main.set_gateway(fresh)
    monkeypatch.setattr(main, "SESSION_STORE", SessionStore())
    yield fresh
    main.SESSION_STORE.clear()
