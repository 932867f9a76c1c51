"StaffDesk admin backend"
from __future__ import annotations

import asyncio
import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from backend.identity_access.errors import AccessError, Unauthenticated, UpstreamError
from backend.identity_access.tokens import parse_bearer

from . import config as _cfg
from .routes.admins import admins_router
from .routes.auth import auth_router
from .routes.employees import employees_router
from .routes.security import error_response, json_private
from .wiring import get_verifier


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via STAFFDESK_ENABLE_DOTENV (default true
      outside pytest).
    """
    import sys
    # Under pytest, do not load .env; tests provide their own env.
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("STAFFDESK_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


from dotenv import load_dotenv

if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

# --- App Setup -------------------------------------------------------------------

logger = logging.getLogger("staffdesk.web")

app = FastAPI(title="StaffDesk", description="Admin and employee management API", version="0.1.0")

PUBLIC_PATHS = ("/health", "/docs", "/openapi.json", "/favicon.ico")


def _is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS


# --- Auth Middleware -----------------------------------------------------------

@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    """Establish the caller identity once per request.

    Protected paths without a valid bearer credential answer 401 here, before
    any route (and therefore any role check) runs.
    """
    if request.method == "OPTIONS" or _is_public_path(request.url.path):
        return await call_next(request)

    token = parse_bearer(request.headers.get("authorization"))
    try:
        # JWKS fetches and live role lookups block; run them in a worker thread.
        identity = await asyncio.to_thread(get_verifier().verify, token)
    except AccessError as exc:
        if not isinstance(exc, Unauthenticated):
            logger.warning("Credential verification failed: %s code=%s", exc.__class__.__name__, exc.code)
        return error_response(exc, vary_origin=True)

    # Expose minimal, read-only user context for downstream handlers.
    request.state.identity = identity
    request.state.user = identity.as_state()
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------

@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    return response


# Added last so it wraps the auth middleware and answers preflights itself.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cfg.cors_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


# --- Error Rendering -----------------------------------------------------------

@app.exception_handler(AccessError)
async def access_error_handler(request: Request, exc: AccessError):
    if isinstance(exc, UpstreamError):
        logger.warning("Upstream failure path=%s code=%s", request.url.path, exc.code)
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Body schema violations are client errors, reported as 400 (not 422).
    return json_private({"error": "bad_request", "detail": "invalid_body"}, status_code=400)


# --- Routers -------------------------------------------------------------------

app.include_router(auth_router)
app.include_router(admins_router)
app.include_router(employees_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    # Security: include no-store to avoid caching any runtime status.
    return json_private({"status": "ok"})
