"""
Server-side session store: principal plus derived admin status per browser session.

Why: The browser only holds an opaque session id. Everything else (backend
connection, principal, admin status) stays server-side in one owned
`AdminSession` object that readers observe through immutable snapshots.

Lifecycle:
- `SessionStore.create` runs after a successful sign-in. It stores the session
  and starts it: fetch the current principal, then schedule the role lookup in
  the background. The caller does not wait for the lookup.
- Every auth state transition reported by the backend connection (sign-in,
  sign-out, token refresh, user update) re-resolves the admin status.
- Only the most recent lookup may publish; stale results are dropped.
- Expired sessions are swept on every `create` and, at most once per
  `SWEEP_INTERVAL`, by `sweep_if_due` (called per request). Dropping a session
  detaches its auth listener and releases its backend connection.

Security: The role lookup is fail-closed. A failed lookup yields
`AdminStatus.DENIED`; the error is logged and never shown to the user.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set
import asyncio
import logging
import secrets
import time

from dazzle_admin.gateway.ports import Principal, UserConnectionProtocol

from .domain import ADMIN_ROLE, ROLES_TABLE, AdminStatus


logger = logging.getLogger("dazzle.identity_access")

SWEEP_INTERVAL = 60

# Strong references to connection releases still in flight.
_RELEASES: Set[asyncio.Task] = set()


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True)
class SessionState:
    principal: Optional[Principal] = None
    admin: AdminStatus = AdminStatus.UNKNOWN
    loading: bool = True

    @property
    def is_admin(self) -> bool:
        return self.admin is AdminStatus.GRANTED


StateListener = Callable[[SessionState], None]


async def resolve_admin_status(connection: UserConnectionProtocol, principal: Principal | None) -> AdminStatus:
    """Look up an admin role grant for `principal` (fail-closed)."""
    if principal is None:
        return AdminStatus.DENIED
    try:
        rows = await connection.select(ROLES_TABLE, eq={"user_id": principal.id, "role": ADMIN_ROLE}, limit=1)
    except Exception as exc:
        logger.warning("Role lookup failed, treating as non-admin: %s", exc.__class__.__name__)
        return AdminStatus.DENIED
    return AdminStatus.GRANTED if rows else AdminStatus.DENIED


class AdminSession:
    """One browser session: owns the backend connection and the state snapshot."""

    def __init__(
        self,
        session_id: str,
        connection: UserConnectionProtocol,
        *,
        expires_at: Optional[int] = None,
        ttl_seconds: int = 3600,
    ) -> None:
        self.session_id = session_id
        self.connection = connection
        self.expires_at = expires_at
        self.ttl_seconds = ttl_seconds
        self._state = SessionState()
        self._listeners: List[StateListener] = []
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe_auth: Optional[Callable[[], None]] = None

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a snapshot listener; returns the matching unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def is_expired(self, now: Optional[int] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now if now is not None else _now())

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._unsubscribe_auth = self.connection.on_auth_state_change(self._on_auth_event)
        try:
            principal = await self.connection.get_principal()
        except Exception as exc:
            logger.warning("Session fetch failed: %s", exc.__class__.__name__)
            principal = None
        self._begin_resolution(principal)

    async def settled(self) -> SessionState:
        """Wait until no role lookup is in flight and return the snapshot.

        There is no timeout: a hung backend keeps the caller waiting, matching
        the guard which stays suspended for as long as the lookup runs.
        """
        while self._task is not None and not self._task.done():
            await self._task
        return self._state

    def close(self) -> Optional[asyncio.Task]:
        """Detach from the connection and release it.

        Returns the release task, or None when no event loop is running (the
        connection is then left to the backend's own expiry).
        """
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        # Invalidate any in-flight lookup before cancelling it.
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._listeners.clear()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; session connection not released")
            return None
        task = loop.create_task(self._release_connection())
        _RELEASES.add(task)
        task.add_done_callback(_RELEASES.discard)
        return task

    async def _release_connection(self) -> None:
        try:
            await self.connection.close()
        except Exception as exc:
            logger.warning("Session connection release failed: %s", exc.__class__.__name__)

    # --- Internals -------------------------------------------------------------

    def _publish(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session state listener failed")

    def _on_auth_event(self, event: str, principal: Optional[Principal]) -> None:
        logger.debug("Auth state change for session: %s", event)
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._begin_resolution(principal)
        else:
            # Callbacks may fire from the client's own thread; hop onto the session loop.
            loop.call_soon_threadsafe(self._begin_resolution, principal)

    def _begin_resolution(self, principal: Optional[Principal]) -> None:
        self._generation += 1
        generation = self._generation
        if principal is None:
            self._publish(SessionState(principal=None, admin=AdminStatus.DENIED, loading=False))
            return
        self._publish(SessionState(principal=principal, admin=AdminStatus.UNKNOWN, loading=True))
        loop = self._loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._resolve(principal, generation))

    async def _resolve(self, principal: Principal, generation: int) -> None:
        status = await resolve_admin_status(self.connection, principal)
        if generation != self._generation:
            return
        self._publish(SessionState(principal=principal, admin=status, loading=False))


class SessionStore:
    def __init__(self) -> None:
        self._data: Dict[str, AdminSession] = {}
        self._last_sweep = _now()

    async def create(self, *, connection: UserConnectionProtocol, ttl_seconds: int = 3600) -> AdminSession:
        self.sweep()
        sid = secrets.token_urlsafe(24)
        session = AdminSession(sid, connection, expires_at=_now() + ttl_seconds, ttl_seconds=ttl_seconds)
        self._data[sid] = session
        await session.start()
        return session

    def get(self, session_id: str) -> Optional[AdminSession]:
        session = self._data.get(session_id)
        if not session:
            return None
        if session.is_expired():
            self.delete(session_id)
            return None
        return session

    def delete(self, session_id: str) -> None:
        session = self._data.pop(session_id, None)
        if session is not None:
            session.close()

    def sweep(self) -> int:
        """Drop every expired session; returns how many were dropped."""
        now = _now()
        self._last_sweep = now
        expired = [sid for sid, session in self._data.items() if session.is_expired(now)]
        for sid in expired:
            self.delete(sid)
        if expired:
            logger.info("Swept %d expired sessions", len(expired))
        return len(expired)

    def sweep_if_due(self) -> int:
        if _now() - self._last_sweep < SWEEP_INTERVAL:
            return 0
        return self.sweep()

    def clear(self) -> None:
        for sid in list(self._data):
            self.delete(sid)

    async def aclose(self) -> None:
        """Drop every session and wait for the connections to be released."""
        releases = []
        for sid in list(self._data):
            task = self._data.pop(sid).close()
            if task is not None:
                releases.append(task)
        if releases:
            await asyncio.gather(*releases)

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["AdminSession", "SessionState", "SessionStore", "resolve_admin_status"]
