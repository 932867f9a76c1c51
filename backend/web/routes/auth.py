"""
Authentication-related FastAPI routes (router-only module).

Why:
    `/login` exchanges an identity provider access token for a short-lived
    session token that carries the caller's live role. The bearer credential
    is verified by the auth middleware; this handler re-reads the role from
    the identity provider so a demoted admin cannot log in even when the
    presented access token still lists the old role. Requests made with the
    session token are authorized with the live role as well (see `wiring`).
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request

from backend.identity_access.policy import Action, require
from backend.identity_access.tokens import Identity

from ..wiring import get_directory, get_issuer
from .security import current_identity, json_private

auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("staffdesk.web.auth")


@auth_router.post("/login")
async def login(request: Request):
    """Issue a session token for admins and sysadmins.

    Permissions:
        Caller must hold `admin` or `sysadmin` in the identity provider.
    Responses:
        200 `{token, role, expiresIn}`; 401 without a valid bearer; 403 when
        the live role is `user`.
    """
    caller = current_identity(request)
    live_role = await asyncio.to_thread(get_directory().role_of, caller.uid)
    require(live_role, Action.LOGIN)
    issuer = get_issuer()
    token = issuer.issue(Identity(uid=caller.uid, email=caller.email, role=live_role))
    logger.info("Session issued uid=%s role=%s", caller.uid[-6:], live_role.value)
    return json_private({"token": token, "role": live_role.value, "expiresIn": issuer.ttl_seconds})
