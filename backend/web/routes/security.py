"""
Shared web security helpers for the route modules.

Contains the private JSON response helpers and the per-request authorization
gate. Keeping a single implementation avoids drift between the admin and
employee adapters.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from backend.identity_access.errors import AccessError, Unauthenticated
from backend.identity_access.policy import Action, require
from backend.identity_access.tokens import Identity

PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


def private_headers(*, vary_origin: bool = False) -> dict:
    headers = dict(PRIVATE_HEADERS)
    if vary_origin:
        headers["Vary"] = "Origin"
    return headers


def json_private(payload, *, status_code: int = 200, vary_origin: bool = False) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers.

    Rationale: Every endpoint exposes role-scoped data (admin profiles,
    employee records, session tokens), so nothing may be cached by proxies.
    """
    return JSONResponse(content=payload, status_code=status_code, headers=private_headers(vary_origin=vary_origin))


def error_response(exc: AccessError, *, vary_origin: bool = False) -> JSONResponse:
    """Render an `AccessError` as `{"error": kind, "detail": code}`."""
    return json_private(
        {"error": exc.kind, "detail": exc.code},
        status_code=exc.status_code,
        vary_origin=vary_origin,
    )


def current_identity(request: Request) -> Identity:
    """Identity established by the auth middleware for this request."""
    identity = getattr(request.state, "identity", None)
    if not isinstance(identity, Identity):
        raise Unauthenticated("missing_token")
    return identity


def require_action(request: Request, action: Action) -> Identity:
    """Authenticate first, then authorize; 401 always wins over 403."""
    identity = current_identity(request)
    require(identity.role, action)
    return identity
