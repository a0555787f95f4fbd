"""
In-memory backend for development and tests.

Mirrors the behavior the console relies on from Supabase: password auth with
per-user connections, table rows with equality filters and ordering, change
notifications per table, and the `approve_admin_request` procedure with its
all-or-nothing semantics and the `(user_id, role)` uniqueness on
`user_roles`.

Fault injection: `fail(op, table)` arms a one-shot `BackendError` for the next
matching call so tests can exercise the error taxonomy without a network.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
from uuid import uuid4
import copy
import logging

from .ports import AuthListener, BackendError, ChangeListener, Principal, Unsubscribe


logger = logging.getLogger("dazzle.gateway")

ADMIN_REQUESTS = "admin_requests"
USER_ROLES = "user_roles"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches(row: Mapping[str, Any], eq: Mapping[str, Any] | None) -> bool:
    return all(row.get(k) == v for k, v in (eq or {}).items())


@dataclass
class _Account:
    principal: Principal
    password: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class InMemoryBackend:
    """Process-local stand-in for the hosted backend."""

    def __init__(self, *, auto_confirm: bool = True) -> None:
        self.auto_confirm = auto_confirm
        self.accounts: Dict[str, _Account] = {}
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self._listeners: Dict[str, List[ChangeListener]] = {}
        self._failures: List[tuple[str, Optional[str], str]] = []

    # --- Fault injection --------------------------------------------------------

    def fail(self, op: str, table: str | None = None, *, code: str = "network_error") -> None:
        """Arm a one-shot failure for the next `op` (optionally on `table`)."""
        self._failures.append((op, table, code))

    def _check_failure(self, op: str, table: str | None = None) -> None:
        for idx, (f_op, f_table, code) in enumerate(self._failures):
            if f_op == op and (f_table is None or f_table == table):
                del self._failures[idx]
                raise BackendError(code, f"injected failure on {op} {table or ''}".strip())

    # --- Seeding helpers ---------------------------------------------------------

    def create_account(self, *, email: str, password: str, metadata: Mapping[str, Any] | None = None) -> Principal:
        key = email.strip().lower()
        if key in self.accounts:
            raise BackendError("user_already_exists")
        principal = Principal(
            id=str(uuid4()),
            email=email.strip(),
            email_verified=self.auto_confirm,
            created_at=_now_iso(),
        )
        self.accounts[key] = _Account(principal=principal, password=password, metadata=dict(metadata or {}))
        return principal

    def seed(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a row without notifications or failure checks."""
        stored = dict(row)
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", _now_iso())
        self.tables.setdefault(table, []).append(stored)
        return copy.deepcopy(stored)

    def rows(self, table: str, **eq: Any) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self.tables.get(table, []) if _matches(r, eq)]

    def grant_admin(self, user_id: str) -> None:
        if not self.rows(USER_ROLES, user_id=user_id, role="admin"):
            self.seed(USER_ROLES, {"user_id": user_id, "role": "admin"})

    # --- Table primitives ----------------------------------------------------------

    def _notify(self, table: str, event: str, new: Mapping[str, Any] | None, old: Mapping[str, Any] | None) -> None:
        payload = {
            "schema": "public",
            "table": table,
            "eventType": event,
            "new": copy.deepcopy(dict(new or {})),
            "old": copy.deepcopy(dict(old or {})),
        }
        for listener in list(self._listeners.get(table, [])):
            listener(payload)

    def _select(self, table, *, eq=None, order_by=None, descending=False, limit=None) -> List[Dict[str, Any]]:
        self._check_failure("select", table)
        rows = [copy.deepcopy(r) for r in self.tables.get(table, []) if _matches(r, eq)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by) or ""), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def _insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        self._check_failure("insert", table)
        stored = dict(row)
        if table == USER_ROLES and self.rows(USER_ROLES, user_id=stored.get("user_id"), role=stored.get("role")):
            raise BackendError("duplicate_key", "user_roles_user_id_role_key")
        stored.setdefault("id", str(uuid4()))
        stored.setdefault("created_at", _now_iso())
        self.tables.setdefault(table, []).append(stored)
        self._notify(table, "INSERT", stored, None)
        return copy.deepcopy(stored)

    def _update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        self._check_failure("update", table)
        changed: List[Dict[str, Any]] = []
        for row in self.tables.get(table, []):
            if _matches(row, eq):
                old = copy.deepcopy(row)
                row.update(values)
                changed.append(copy.deepcopy(row))
                self._notify(table, "UPDATE", row, old)
        return changed

    def _count(self, table: str, *, eq=None) -> int:
        self._check_failure("count", table)
        return sum(1 for r in self.tables.get(table, []) if _matches(r, eq))

    def _approve_admin_request(self, caller: Principal | None, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Both effects or neither, like the SQL procedure."""
        if caller is None or not self.rows(USER_ROLES, user_id=caller.id, role="admin"):
            raise BackendError("forbidden", "caller is not an admin")
        request_id = params.get("request_id")
        matches = [r for r in self.tables.get(ADMIN_REQUESTS, []) if r.get("id") == request_id]
        if not matches:
            raise BackendError("not_found", "admin request not found")
        request = matches[0]
        if request.get("status") != "pending":
            raise BackendError("invalid_transition", f"request is {request.get('status')}")
        # Evaluate every failure point before mutating anything.
        self._check_failure("insert", USER_ROLES)
        self._check_failure("update", ADMIN_REQUESTS)
        user_id = request.get("user_id")
        grant = None
        if not self.rows(USER_ROLES, user_id=user_id, role="admin"):
            grant = {"id": str(uuid4()), "user_id": user_id, "role": "admin", "created_at": _now_iso()}
            self.tables.setdefault(USER_ROLES, []).append(grant)
        old = copy.deepcopy(request)
        request.update({"status": "approved", "reviewed_by": caller.id, "reviewed_at": _now_iso()})
        if grant is not None:
            self._notify(USER_ROLES, "INSERT", grant, None)
        self._notify(ADMIN_REQUESTS, "UPDATE", request, old)
        return copy.deepcopy(request)

    def _rpc(self, caller: Principal | None, function: str, params: Mapping[str, Any]) -> Any:
        self._check_failure("rpc", function)
        if function == "approve_admin_request":
            return self._approve_admin_request(caller, params)
        raise BackendError("unknown_function", function)

    # --- BackendGatewayProtocol ------------------------------------------------------

    async def sign_up(
        self,
        *,
        email: str,
        password: str,
        metadata: Mapping[str, Any],
        redirect_to: str | None = None,
    ) -> Principal:
        self._check_failure("sign_up")
        return self.create_account(email=email, password=password, metadata=metadata)

    async def sign_in(self, *, email: str, password: str) -> "InMemoryConnection":
        self._check_failure("sign_in")
        account = self.accounts.get((email or "").strip().lower())
        if account is None or account.password != password:
            raise BackendError("invalid_credentials", "Invalid login credentials")
        stamped = Principal(
            id=account.principal.id,
            email=account.principal.email,
            email_verified=account.principal.email_verified,
            created_at=account.principal.created_at,
            last_sign_in_at=_now_iso(),
        )
        account.principal = stamped
        return InMemoryConnection(self, stamped)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        return self._insert(table, row)

    async def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int:
        return self._count(table, eq=eq)

    async def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], Awaitable[None]]:
        self._check_failure("subscribe", table)
        self._listeners.setdefault(table, []).append(listener)

        async def _unsubscribe() -> None:
            bucket = self._listeners.get(table, [])
            if listener in bucket:
                bucket.remove(listener)

        return _unsubscribe

    async def close(self) -> None:
        self._listeners.clear()


class InMemoryConnection:
    """Per-principal connection onto an `InMemoryBackend`."""

    def __init__(self, backend: InMemoryBackend, principal: Principal | None) -> None:
        self._backend = backend
        self._principal = principal
        self._auth_listeners: List[AuthListener] = []
        self.closed = False

    @property
    def principal(self) -> Optional[Principal]:
        return self._principal

    def emit(self, event: str, principal: Principal | None = None) -> None:
        """Publish an auth state transition to every listener.

        Without an explicit principal the current one is republished (e.g. for
        TOKEN_REFRESHED).
        """
        if event == "SIGNED_OUT":
            self._principal = None
        elif principal is not None:
            self._principal = principal
        for listener in list(self._auth_listeners):
            listener(event, self._principal)

    async def get_principal(self) -> Optional[Principal]:
        self._backend._check_failure("get_principal")
        return self._principal

    def on_auth_state_change(self, listener: AuthListener) -> Unsubscribe:
        self._auth_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._auth_listeners:
                self._auth_listeners.remove(listener)

        return _unsubscribe

    async def select(self, table, *, eq=None, order_by=None, descending=False, limit=None) -> List[Dict[str, Any]]:
        return self._backend._select(table, eq=eq, order_by=order_by, descending=descending, limit=limit)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        return self._backend._insert(table, row)

    async def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return self._backend._update(table, values, eq=eq)

    async def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int:
        return self._backend._count(table, eq=eq)

    async def rpc(self, function: str, params: Mapping[str, Any]) -> Any:
        return self._backend._rpc(self._principal, function, params)

    async def update_password(self, new_password: str) -> None:
        self._backend._check_failure("update_password")
        if self._principal is None:
            raise BackendError("not_authenticated")
        account = self._backend.accounts.get(self._principal.email.lower())
        if account is None:
            raise BackendError("user_not_found")
        account.password = new_password
        self.emit("USER_UPDATED")

    async def sign_out(self) -> None:
        self._backend._check_failure("sign_out")
        self.emit("SIGNED_OUT")

    async def close(self) -> None:
        self._auth_listeners.clear()
        self._principal = None
        self.closed = True


__all__ = ["InMemoryBackend", "InMemoryConnection", "ADMIN_REQUESTS", "USER_ROLES"]
