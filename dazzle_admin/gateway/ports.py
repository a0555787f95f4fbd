"""
Gateway interface onto the hosted backend (auth, tables, realtime).

Why:
    The console owns no persistence. Every screen reads and writes remote
    tables, gated by a role lookup against the same backend. Routes and
    services talk to these protocols so tests can swap the Supabase adapter for
    the in-memory backend without touching business logic.

Shape:
    - `BackendGatewayProtocol` is process-wide: sign-up, sign-in, service-level
      table access and realtime subscriptions.
    - `UserConnectionProtocol` is per principal: it carries the signed-in
      user's credentials, so row-level security applies to its queries.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol


class BackendError(Exception):
    """Raised by gateways when the remote backend rejects or fails a call.

    `code` is a short machine-readable token (e.g. `duplicate_key`,
    `invalid_credentials`, `network_error`); `detail` may carry the backend's
    message and must never contain credentials.
    """

    def __init__(self, code: str, detail: str | None = None) -> None:
        super().__init__(code if detail is None else f"{code}: {detail}")
        self.code = code
        self.detail = detail


@dataclass(frozen=True)
class Principal:
    """An authenticated account in the backend identity system."""

    id: str
    email: str
    email_verified: bool = False
    created_at: Optional[str] = None
    last_sign_in_at: Optional[str] = None


AuthListener = Callable[[str, Optional[Principal]], None]
ChangeListener = Callable[[Dict[str, Any]], None]
Unsubscribe = Callable[[], None]


class UserConnectionProtocol(Protocol):
    """Backend access on behalf of one signed-in principal."""

    async def get_principal(self) -> Optional[Principal]: ...

    def on_auth_state_change(self, listener: AuthListener) -> Unsubscribe: ...

    async def select(
        self,
        table: str,
        *,
        eq: Mapping[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]: ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]: ...

    async def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]: ...

    async def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int: ...

    async def rpc(self, function: str, params: Mapping[str, Any]) -> Any: ...

    async def update_password(self, new_password: str) -> None: ...

    async def sign_out(self) -> None: ...

    async def close(self) -> None:
        """Release the connection: end its local session and stop token refresh."""
        ...


class BackendGatewayProtocol(Protocol):
    """Process-wide entry point onto the backend."""

    async def sign_up(
        self,
        *,
        email: str,
        password: str,
        metadata: Mapping[str, Any],
        redirect_to: str | None = None,
    ) -> Principal: ...

    async def sign_in(self, *, email: str, password: str) -> UserConnectionProtocol: ...

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]: ...

    async def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int: ...

    async def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], Awaitable[None]]: ...

    async def close(self) -> None: ...


__all__ = [
    "AuthListener",
    "BackendError",
    "BackendGatewayProtocol",
    "ChangeListener",
    "Principal",
    "Unsubscribe",
    "UserConnectionProtocol",
]
