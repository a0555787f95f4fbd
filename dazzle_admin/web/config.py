"""
Configuration and startup security checks for the admin console.

Why: The console talks to a hosted backend with real credentials. This module
reads the environment once into a settings object and provides a single guard
that refuses obviously insecure production deployments without burdening
local development (which may run on the in-memory backend).

Permissions: The caller needs no special privileges. The functions only read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
import sys

DEFAULT_SESSION_TTL = 3600
MIN_SESSION_TTL = 300
MAX_SESSION_TTL = 86400


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip()


def _is_placeholder(value: str) -> bool:
    upper = (value or "").strip().upper()
    return not upper or upper.startswith("DUMMY") or upper.startswith("CHANGE_ME")


def should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via CONSOLE_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = _env("CONSOLE_ENABLE_DOTENV", "true").lower()
    return flag in ("1", "true", "yes")


def _parse_ttl(raw: str) -> int:
    try:
        ttl = int(raw) if raw else DEFAULT_SESSION_TTL
    except (TypeError, ValueError):
        ttl = DEFAULT_SESSION_TTL
    return max(MIN_SESSION_TTL, min(MAX_SESSION_TTL, ttl))


@dataclass(frozen=True)
class ConsoleSettings:
    environment: str
    supabase_url: str
    supabase_anon_key: str
    supabase_service_key: str
    site_url: str
    session_ttl: int
    trust_proxy: bool

    @property
    def prod_like(self) -> bool:
        return _is_prod_like(self.environment)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


def load_settings() -> ConsoleSettings:
    return ConsoleSettings(
        environment=_env("CONSOLE_ENV", "dev").lower(),
        supabase_url=_env("SUPABASE_URL"),
        supabase_anon_key=_env("SUPABASE_ANON_KEY"),
        supabase_service_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
        site_url=_env("CONSOLE_SITE_URL"),
        session_ttl=_parse_ttl(_env("CONSOLE_SESSION_TTL")),
        trust_proxy=_env("CONSOLE_TRUST_PROXY", "false").lower() == "true",
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - SUPABASE_URL must be set and use https.
    - SUPABASE_ANON_KEY must be set and not a placeholder.
    - SUPABASE_SERVICE_ROLE_KEY must be set and not a placeholder. Registration
      inserts and the pending count run on the process-wide client, which has
      no user session; with only the anon key, row-level security rejects them.
    - CONSOLE_SITE_URL, when set, must use https.
    """
    settings = load_settings()
    if not settings.prod_like:
        return  # dev/test remain permissive

    if not settings.supabase_url:
        raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
    if not settings.supabase_url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production.")

    if _is_placeholder(settings.supabase_anon_key):
        raise SystemExit("Refusing to start: SUPABASE_ANON_KEY is unset or a placeholder in production.")

    if _is_placeholder(settings.supabase_service_key):
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a placeholder in production."
        )

    if settings.site_url and settings.site_url.lower().startswith("http://"):
        raise SystemExit("Refusing to start: CONSOLE_SITE_URL must use https in production.")


__all__ = ["ConsoleSettings", "ensure_secure_config_on_startup", "load_settings", "should_load_dotenv"]
