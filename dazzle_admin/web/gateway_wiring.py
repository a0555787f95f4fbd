"""
Helper for wiring the backend gateway from the environment.

Why:
    The app module needs a gateway at import time, tests need to swap it, and
    local development should work without a Supabase project. This module
    keeps that decision in one place.

Behavior:
    - SUPABASE_URL and SUPABASE_ANON_KEY set -> `SupabaseGateway`. The service
      role key backs the process-wide client; without it (dev only, the startup
      guard requires it in prod) a warning is logged.
    - Otherwise -> `InMemoryBackend`. Prod-like environments never get here
      because the startup config guard refuses to start without Supabase.

Security:
    Keys are read from the environment and never logged.
"""
from __future__ import annotations

import logging

from dazzle_admin.gateway import InMemoryBackend, SupabaseGateway
from dazzle_admin.gateway.ports import BackendGatewayProtocol

from .config import ConsoleSettings, load_settings


def build_gateway_from_env(settings: ConsoleSettings | None = None) -> BackendGatewayProtocol:
    logger = logging.getLogger("dazzle.web")
    settings = settings or load_settings()
    if settings.supabase_configured:
        gateway = SupabaseGateway(
            settings.supabase_url,
            settings.supabase_anon_key,
            settings.supabase_service_key or None,
        )
        logger.info("Backend gateway wired: Supabase")
        if not settings.supabase_service_key:
            logger.warning(
                "SUPABASE_SERVICE_ROLE_KEY not set; registration inserts and pending counts "
                "run on the anon key and are rejected by row-level security"
            )
        return gateway
    logger.warning("SUPABASE_URL/SUPABASE_ANON_KEY not set; using the in-memory backend")
    return InMemoryBackend()


__all__ = ["build_gateway_from_env"]
