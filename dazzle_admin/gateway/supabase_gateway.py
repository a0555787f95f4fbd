"""
Supabase-backed gateway for auth, tables and realtime.

This adapter implements the gateway protocols on top of the async `supabase`
client. It is duck-typed so tests can pass a stub client factory. The client
is expected to expose:

- `auth.sign_up / sign_in_with_password / get_session / update_user / sign_out`
- `auth.on_auth_state_change(callback) -> subscription with .unsubscribe()`
- `table(name)` returning a PostgREST builder (`select/insert/update/eq/order/limit/execute`)
- `rpc(function, params)` returning a builder with `execute()`
- `channel(name).on_postgres_changes(...)`, `remove_channel(channel)`

Security:
- Per-user connections use the anon key plus the user's session so row-level
  security applies to every query.
- The service role key (when configured) is used only for the process-wide
  client: registration inserts, pending counts and realtime subscriptions.
- Never log credentials or tokens; errors are reduced to codes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional
import logging

from .ports import AuthListener, BackendError, ChangeListener, Principal, Unsubscribe


logger = logging.getLogger("dazzle.gateway")

ClientFactory = Callable[[str, str, bool], Awaitable[Any]]

# Error tokens raised by `approve_admin_request` (see supabase/migrations).
PROCEDURE_ERRORS = frozenset({"forbidden", "not_found", "invalid_transition"})


async def _default_client_factory(url: str, key: str, persist_session: bool) -> Any:
    # Lazy imports keep the optional network stack out of test paths.
    from supabase import acreate_client  # type: ignore
    from supabase.lib.client_options import AsyncClientOptions  # type: ignore

    options = AsyncClientOptions(persist_session=persist_session, auto_refresh_token=True)
    return await acreate_client(url, key, options=options)


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _principal_from_user(user: Any) -> Optional[Principal]:
    if user is None:
        return None
    user_id = getattr(user, "id", None)
    if not user_id:
        return None
    return Principal(
        id=str(user_id),
        email=str(getattr(user, "email", "") or ""),
        email_verified=getattr(user, "email_confirmed_at", None) is not None,
        created_at=_iso(getattr(user, "created_at", None)),
        last_sign_in_at=_iso(getattr(user, "last_sign_in_at", None)),
    )


def _backend_error(exc: Exception, default_code: str) -> BackendError:
    """Reduce a client exception to a BackendError without leaking payloads."""
    if isinstance(exc, BackendError):
        return exc
    code = getattr(exc, "code", None)
    if not isinstance(code, str) or not code:
        code = default_code
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    return BackendError(code, str(message))


def _apply_eq(query: Any, eq: Mapping[str, Any] | None) -> Any:
    for column, value in (eq or {}).items():
        query = query.eq(column, value)
    return query


class SupabaseConnection:
    """Backend access for one signed-in principal (own client, own session)."""

    def __init__(self, client: Any, principal: Principal | None) -> None:
        self._client = client
        self._principal = principal
        self._closed = False

    async def get_principal(self) -> Optional[Principal]:
        try:
            session = await self._client.auth.get_session()
        except Exception as exc:
            raise _backend_error(exc, "session_fetch_failed") from exc
        principal = _principal_from_user(getattr(session, "user", None)) if session else None
        self._principal = principal
        return principal

    def on_auth_state_change(self, listener: AuthListener) -> Unsubscribe:
        def _callback(event: Any, session: Any) -> None:
            user = getattr(session, "user", None) if session is not None else None
            listener(str(getattr(event, "value", event)), _principal_from_user(user))

        subscription = self._client.auth.on_auth_state_change(_callback)

        def _unsubscribe() -> None:
            try:
                subscription.unsubscribe()
            except Exception as exc:  # pragma: no cover - client teardown
                logger.warning("Auth listener unsubscribe failed: %s", exc.__class__.__name__)

        return _unsubscribe

    async def select(self, table, *, eq=None, order_by=None, descending=False, limit=None) -> List[Dict[str, Any]]:
        try:
            query = _apply_eq(self._client.table(table).select("*"), eq)
            if order_by:
                query = query.order(order_by, desc=descending)
            if limit is not None:
                query = query.limit(limit)
            res = await query.execute()
        except Exception as exc:
            raise _backend_error(exc, "select_failed") from exc
        return list(getattr(res, "data", None) or [])

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            res = await self._client.table(table).insert(dict(row)).execute()
        except Exception as exc:
            raise _backend_error(exc, "insert_failed") from exc
        data = list(getattr(res, "data", None) or [])
        return dict(data[0]) if data else dict(row)

    async def update(self, table: str, values: Mapping[str, Any], *, eq: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if not eq:
            raise ValueError("update requires at least one filter")
        try:
            res = await _apply_eq(self._client.table(table).update(dict(values)), eq).execute()
        except Exception as exc:
            raise _backend_error(exc, "update_failed") from exc
        return list(getattr(res, "data", None) or [])

    async def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int:
        try:
            res = await _apply_eq(self._client.table(table).select("*", count="exact", head=True), eq).execute()
        except Exception as exc:
            raise _backend_error(exc, "count_failed") from exc
        return int(getattr(res, "count", None) or 0)

    async def rpc(self, function: str, params: Mapping[str, Any]) -> Any:
        try:
            res = await self._client.rpc(function, dict(params)).execute()
        except Exception as exc:
            error = _backend_error(exc, "rpc_failed")
            # Procedures raise their error token as the message (SQLSTATE in `code`).
            if error.detail in PROCEDURE_ERRORS:
                raise BackendError(error.detail, error.code) from exc
            raise error from exc
        data = getattr(res, "data", None)
        if isinstance(data, list):
            return data[0] if data else None
        return data

    async def update_password(self, new_password: str) -> None:
        try:
            await self._client.auth.update_user({"password": new_password})
        except Exception as exc:
            raise _backend_error(exc, "password_update_failed") from exc

    async def sign_out(self) -> None:
        try:
            await self._client.auth.sign_out()
        except Exception as exc:
            raise _backend_error(exc, "sign_out_failed") from exc
        self._principal = None

    async def close(self) -> None:
        # Local scope revokes only this client's refresh token; removing the
        # session also cancels the client's auto-refresh timer.
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.auth.sign_out({"scope": "local"})
        except Exception as exc:
            raise _backend_error(exc, "close_failed") from exc
        finally:
            self._principal = None


class SupabaseGateway:
    """Process-wide gateway; hands out one `SupabaseConnection` per sign-in."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        service_key: str | None = None,
        *,
        client_factory: ClientFactory | None = None,
    ) -> None:
        if not url or not anon_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required")
        self._url = url.rstrip("/")
        self._anon_key = anon_key
        self._service_key = service_key or None
        self._factory = client_factory or _default_client_factory
        self._server_client: Any = None
        self._server = None

    async def _server_connection(self) -> SupabaseConnection:
        if self._server is None:
            self._server_client = await self._factory(self._url, self._service_key or self._anon_key, False)
            self._server = SupabaseConnection(self._server_client, None)
        return self._server

    async def sign_up(
        self,
        *,
        email: str,
        password: str,
        metadata: Mapping[str, Any],
        redirect_to: str | None = None,
    ) -> Principal:
        client = await self._factory(self._url, self._anon_key, False)
        options: Dict[str, Any] = {"data": dict(metadata)}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        try:
            res = await client.auth.sign_up({"email": email, "password": password, "options": options})
        except Exception as exc:
            raise _backend_error(exc, "sign_up_failed") from exc
        principal = _principal_from_user(getattr(res, "user", None))
        if principal is None:
            raise BackendError("sign_up_failed", "no user returned")
        return principal

    async def sign_in(self, *, email: str, password: str) -> SupabaseConnection:
        client = await self._factory(self._url, self._anon_key, True)
        try:
            res = await client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            raise _backend_error(exc, "invalid_credentials") from exc
        principal = _principal_from_user(getattr(res, "user", None))
        if principal is None:
            raise BackendError("invalid_credentials", "no user returned")
        return SupabaseConnection(client, principal)

    async def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        server = await self._server_connection()
        return await server.insert(table, row)

    async def count(self, table: str, *, eq: Mapping[str, Any] | None = None) -> int:
        server = await self._server_connection()
        return await server.count(table, eq=eq)

    async def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], Awaitable[None]]:
        await self._server_connection()
        client = self._server_client

        def _callback(payload: Any) -> None:
            listener(dict(payload) if isinstance(payload, Mapping) else {"payload": payload})

        try:
            channel = client.channel(f"{table}-changes")
            channel.on_postgres_changes(event="*", schema="public", table=table, callback=_callback)
            await channel.subscribe()
        except Exception as exc:
            raise _backend_error(exc, "subscribe_failed") from exc
        logger.info("Realtime subscription active: %s", table)

        async def _unsubscribe() -> None:
            try:
                await client.remove_channel(channel)
            except Exception as exc:  # pragma: no cover - teardown only
                logger.warning("Realtime unsubscribe failed: %s", exc.__class__.__name__)

        return _unsubscribe

    async def close(self) -> None:
        client = self._server_client
        if client is None:
            return
        remove_all = getattr(client, "remove_all_channels", None)
        if remove_all is not None:
            try:
                await remove_all()
            except Exception as exc:  # pragma: no cover - teardown only
                logger.warning("Realtime teardown failed: %s", exc.__class__.__name__)
        self._server_client = None
        self._server = None


__all__ = ["SupabaseConnection", "SupabaseGateway"]
