"Dazzle admin console"
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from dazzle_admin import __version__
from dazzle_admin.approvals import PendingRequestCounter
from dazzle_admin.gateway.ports import BackendGatewayProtocol
from dazzle_admin.identity_access import AccessGuard, AdminSession, GuardDecision, SessionStore

from .auth_utils import SESSION_COOKIE_NAME, private_no_store
from .components import AdminLayout, PlaceholderPage
from .config import ensure_secure_config_on_startup, load_settings, should_load_dotenv
from .gateway_wiring import build_gateway_from_env

if should_load_dotenv():
    load_dotenv()

# Fail fast on insecure production configuration.
ensure_secure_config_on_startup()

# --- Settings & shared state ----------------------------------------------------

logger = logging.getLogger("dazzle.web")
SETTINGS = load_settings()
SESSION_STORE = SessionStore()
GUARD = AccessGuard()
GATEWAY: BackendGatewayProtocol = build_gateway_from_env(SETTINGS)
PENDING_COUNTER = PendingRequestCounter(GATEWAY)


def get_gateway() -> BackendGatewayProtocol:
    return GATEWAY


def set_gateway(gateway: BackendGatewayProtocol) -> None:
    """Swap the backend gateway (tests); the pending counter follows it."""
    global GATEWAY, PENDING_COUNTER
    GATEWAY = gateway
    PENDING_COUNTER = PendingRequestCounter(gateway)


async def ensure_pending_counter() -> PendingRequestCounter:
    """Start the process-wide pending counter on first use.

    Runs from the lifespan hook under a real server and lazily from the guard
    middleware otherwise (in-process test transports skip lifespan events).
    """
    counter = PENDING_COUNTER
    if not counter.running:
        await counter.start()
    return counter


@asynccontextmanager
async def lifespan(app: FastAPI):
    await ensure_pending_counter()
    yield
    await PENDING_COUNTER.stop()
    await SESSION_STORE.aclose()
    await GATEWAY.close()


app = FastAPI(title="Dazzle Admin", description="Admin console for the Dazzle catalogue", version=__version__, lifespan=lifespan)

# --- Static Files & Routers -----------------------------------------------------

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

from .routes.admin import admin_router  # noqa: E402
from .routes.approvals import approvals_router  # noqa: E402
from .routes.auth import auth_router  # noqa: E402

app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(approvals_router)

# --- Helpers shared by the routers ------------------------------------------------

PUBLIC_PATHS = frozenset({"/", "/health", "/favicon.ico", "/admin/login", "/admin/register", "/admin/logout"})


def _is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith("/static/")


def _refresh_target(path: str, query: str) -> str:
    """Same-site URL for the placeholder refresh.

    Leading slashes and backslashes collapse to one so `//host/x` cannot
    become a scheme-relative, off-site target.
    """
    target = "/" + path.lstrip("/\\")
    return target + (f"?{query}" if query else "")


def current_session(request: Request) -> Optional[AdminSession]:
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if not sid:
        return None
    try:
        return SESSION_STORE.get(sid)
    except Exception as exc:
        logger.warning("Session store get failed: %s", exc.__class__.__name__)
        return None


def json_error(code: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": code}, status_code=status_code, headers=private_no_store())


def csrf_violation() -> JSONResponse:
    return json_error("csrf_violation", 403)


def render_page(
    request: Request,
    title: str,
    content: str,
    *,
    notice: Optional[str] = None,
    status_code: int = 200,
    show_nav: bool = True,
) -> HTMLResponse:
    """Wrap page content in the admin layout (no-store, user-specific)."""
    user = getattr(request.state, "user", None) if show_nav else None
    layout = AdminLayout(
        title=title,
        content=content,
        user=user,
        current_path=request.url.path,
        pending_count=PENDING_COUNTER.value,
        notice=notice,
        show_nav=show_nav,
    )
    return HTMLResponse(content=layout.render(), status_code=status_code, headers=private_no_store())


# --- Access guard middleware ------------------------------------------------------

@app.middleware("http")
async def admin_guard(request: Request, call_next):
    path = request.url.path
    SESSION_STORE.sweep_if_due()
    if _is_public_path(path):
        return await call_next(request)

    session = current_session(request)
    state = session.state if session is not None else None
    decision = GUARD.evaluate(state)
    is_api = path.startswith("/api/")

    if decision is GuardDecision.SUSPEND:
        if is_api:
            headers = {**private_no_store(), "Retry-After": "1"}
            return JSONResponse({"error": "authorization_pending"}, status_code=503, headers=headers)
        target = _refresh_target(path, request.url.query)
        return HTMLResponse(PlaceholderPage(target).render(), headers=private_no_store())

    if decision is GuardDecision.REDIRECT:
        if is_api:
            if state is None or state.principal is None:
                return json_error("unauthenticated", 401)
            return json_error("forbidden", 403)
        return RedirectResponse(url=GUARD.login_path, status_code=302)

    principal = state.principal
    request.state.session = session
    request.state.user = {"id": principal.id, "email": principal.email}
    await ensure_pending_counter()
    return await call_next(request)

# --- Security Headers Middleware ----------------------------------------------

@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if SETTINGS.prod_like:
        csp = "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:; form-action 'self'; frame-ancestors 'none';"
    else:
        # Dev: allow inline styles for quick component iteration.
        csp = "default-src 'self'; script-src 'self'; style-src 'self' 'unsafe-inline'; img-src 'self' data:; form-action 'self'; frame-ancestors 'none';"
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response

# --- Basic routes -------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "service": "dazzle-admin"}


@app.get("/")
async def index():
    return RedirectResponse(url="/admin", status_code=302)


@app.get("/favicon.ico")
async def favicon():
    return Response(status_code=204)
