"""
Session store: tri-state admin status, fail-closed lookup, auth events and
stale-result dropping.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

import pytest

from dazzle_admin.gateway import BackendError, InMemoryBackend, InMemoryConnection, Principal
from dazzle_admin.identity_access import AdminSession, AdminStatus, SessionState, SessionStore, resolve_admin_status, stores


pytestmark = pytest.mark.anyio("asyncio")


class _ScriptedConnection:
    """Connection whose role lookups can be held open per user id."""

    def __init__(self, principal: Optional[Principal], grants=()):
        self.principal = principal
        self.grants = set(grants)
        self.gates = {}
        self.fail_lookup = False
        self._listeners = []
        self.closed = False

    async def get_principal(self):
        return self.principal

    def on_auth_state_change(self, listener):
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def close(self):
        self.closed = True

    def emit(self, event: str, principal: Optional[Principal]) -> None:
        for listener in list(self._listeners):
            listener(event, principal)

    async def select(self, table, *, eq=None, order_by=None, descending=False, limit=None):
        user_id = eq["user_id"]
        gate = self.gates.get(user_id)
        if gate is not None:
            await gate.wait()
        if self.fail_lookup:
            raise BackendError("network_error")
        return [{"user_id": user_id, "role": "admin"}] if user_id in self.grants else []


P1 = Principal(id="u-1", email="one@example.com")
P2 = Principal(id="u-2", email="two@example.com")


@pytest.mark.anyio
async def test_new_session_starts_unknown_then_resolves_granted():
    conn = _ScriptedConnection(P1, grants={P1.id})
    session = AdminSession("sid", conn)
    seen: List[SessionState] = []
    session.subscribe(seen.append)

    await session.start()
    assert session.state.loading is True
    assert session.state.admin is AdminStatus.UNKNOWN
    assert session.state.principal == P1

    state = await session.settled()
    assert state.admin is AdminStatus.GRANTED
    assert state.loading is False
    assert state.is_admin
    assert [s.admin for s in seen] == [AdminStatus.UNKNOWN, AdminStatus.GRANTED]


@pytest.mark.anyio
async def test_missing_grant_resolves_denied():
    session = AdminSession("sid", _ScriptedConnection(P1))
    await session.start()
    state = await session.settled()
    assert state.admin is AdminStatus.DENIED
    assert state.principal == P1
    assert not state.is_admin


@pytest.mark.anyio
async def test_lookup_error_is_fail_closed(caplog):
    conn = _ScriptedConnection(P1, grants={P1.id})
    conn.fail_lookup = True
    session = AdminSession("sid", conn)
    await session.start()
    state = await session.settled()
    assert state.admin is AdminStatus.DENIED
    assert state.loading is False
    assert "Role lookup failed" in caplog.text


@pytest.mark.anyio
async def test_no_principal_is_denied_without_lookup():
    session = AdminSession("sid", _ScriptedConnection(None))
    await session.start()
    assert session.state == SessionState(principal=None, admin=AdminStatus.DENIED, loading=False)


@pytest.mark.anyio
async def test_sign_out_event_clears_principal():
    conn = _ScriptedConnection(P1, grants={P1.id})
    session = AdminSession("sid", conn)
    await session.start()
    await session.settled()

    conn.emit("SIGNED_OUT", None)
    assert session.state.principal is None
    assert session.state.admin is AdminStatus.DENIED
    assert session.state.loading is False


@pytest.mark.anyio
async def test_stale_lookup_result_is_dropped():
    conn = _ScriptedConnection(P1, grants={P1.id})
    conn.gates[P1.id] = asyncio.Event()
    session = AdminSession("sid", conn)
    seen: List[SessionState] = []
    session.subscribe(seen.append)

    await session.start()  # lookup for P1 is held open
    conn.emit("SIGNED_IN", P2)  # newer lookup for P2 (no grant)
    state = await session.settled()
    assert state.principal == P2
    assert state.admin is AdminStatus.DENIED

    # Let the older P1 lookup finish: its GRANTED result must not publish.
    conn.gates[P1.id].set()
    for _ in range(5):
        await asyncio.sleep(0)
    assert session.state.principal == P2
    assert session.state.admin is AdminStatus.DENIED
    assert AdminStatus.GRANTED not in [s.admin for s in seen]


@pytest.mark.anyio
async def test_token_refresh_re_resolves_against_current_grants():
    backend = InMemoryBackend()
    user = backend.create_account(email="u@example.com", password="secret123")
    conn = await backend.sign_in(email="u@example.com", password="secret123")
    session = AdminSession("sid", conn)
    await session.start()
    assert (await session.settled()).admin is AdminStatus.DENIED

    backend.grant_admin(user.id)
    conn.emit("TOKEN_REFRESHED")
    assert (await session.settled()).admin is AdminStatus.GRANTED


@pytest.mark.anyio
async def test_close_detaches_auth_listener():
    conn = _ScriptedConnection(P1, grants={P1.id})
    session = AdminSession("sid", conn)
    await session.start()
    await session.settled()
    session.close()

    conn.emit("SIGNED_OUT", None)
    assert session.state.principal == P1
    assert session.state.is_admin


@pytest.mark.anyio
async def test_resolve_admin_status_none_principal_is_denied():
    conn = InMemoryConnection(InMemoryBackend(), None)
    assert await resolve_admin_status(conn, None) is AdminStatus.DENIED


@pytest.mark.anyio
async def test_store_create_get_delete_and_expiry():
    store = SessionStore()
    session = await store.create(connection=_ScriptedConnection(P1, grants={P1.id}), ttl_seconds=60)
    assert len(store) == 1
    assert store.get(session.session_id) is session
    assert store.get("unknown") is None

    session.expires_at = 0
    assert store.get(session.session_id) is None
    assert len(store) == 0

    other = await store.create(connection=_ScriptedConnection(P2))
    store.delete(other.session_id)
    assert store.get(other.session_id) is None


@pytest.mark.anyio
async def test_session_ids_are_unique_and_opaque():
    store = SessionStore()
    a = await store.create(connection=_ScriptedConnection(P1))
    b = await store.create(connection=_ScriptedConnection(P1))
    assert a.session_id != b.session_id
    assert P1.id not in a.session_id
    assert len(a.session_id) >= 24


@pytest.mark.anyio
async def test_delete_releases_connection():
    store = SessionStore()
    conn = _ScriptedConnection(P1, grants={P1.id})
    session = await store.create(connection=conn)
    await session.settled()

    store.delete(session.session_id)
    await asyncio.sleep(0)

    assert conn.closed is True
    assert conn._listeners == []


@pytest.mark.anyio
async def test_create_sweeps_sessions_that_were_never_revisited(monkeypatch):
    store = SessionStore()
    old = [_ScriptedConnection(P1, grants={P1.id}) for _ in range(3)]
    for conn in old:
        await store.create(connection=conn, ttl_seconds=300)
    assert len(store) == 3

    later = stores._now() + 10_000
    monkeypatch.setattr(stores, "_now", lambda: later)
    fresh = await store.create(connection=_ScriptedConnection(P2), ttl_seconds=300)
    await asyncio.sleep(0)

    assert len(store) == 1
    assert store.get(fresh.session_id) is fresh
    assert all(conn.closed for conn in old)
    assert all(conn._listeners == [] for conn in old)


@pytest.mark.anyio
async def test_sweep_if_due_waits_for_interval(monkeypatch):
    store = SessionStore()
    session = await store.create(connection=_ScriptedConnection(P1), ttl_seconds=300)
    session.expires_at = 0

    assert store.sweep_if_due() == 0
    assert len(store) == 1

    later = stores._now() + stores.SWEEP_INTERVAL
    monkeypatch.setattr(stores, "_now", lambda: later)
    assert store.sweep_if_due() == 1
    assert len(store) == 0


@pytest.mark.anyio
async def test_aclose_waits_for_every_release():
    store = SessionStore()
    conns = [_ScriptedConnection(P1), _ScriptedConnection(P2)]
    for conn in conns:
        await store.create(connection=conn)

    await store.aclose()

    assert len(store) == 0
    assert all(conn.closed for conn in conns)


@pytest.mark.anyio
async def test_failed_release_is_logged(caplog):
    class _Broken(_ScriptedConnection):
        async def close(self):
            raise BackendError("network_error")

    session = AdminSession("sid", _Broken(P1))
    await session.start()
    with caplog.at_level("WARNING", logger="dazzle.identity_access"):
        await session.close()
    assert "release failed" in caplog.text
