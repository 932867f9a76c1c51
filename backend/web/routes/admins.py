"""
Admin management API routes (sysadmin only).

Why:
    Thin adapter over `AccountDirectory`: parse the body, ask the policy,
    delegate, render. All role-claim writes happen in the directory.

Permissions:
    Every route requires `sysadmin`. Missing credentials answer 401 before
    any role check (auth middleware).
"""
from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.identity_access.errors import InvalidRequest, NotFound
from backend.identity_access.policy import Action

from ..wiring import get_directory
from .security import json_private, require_action

admins_router = APIRouter(tags=["Admins"])
logger = logging.getLogger("staffdesk.web.admins")


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v


class AddAdminPayload(_Payload):
    email: str | None = Field(default=None, max_length=320)
    first_name: str | None = Field(default=None, alias="firstName", max_length=100)
    last_name: str | None = Field(default=None, alias="lastName", max_length=100)
    photo_url: str | None = Field(default=None, alias="photoURL", max_length=2048)


class RemoveAdminPayload(_Payload):
    uid: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=320)


class UpdateAdminPayload(_Payload):
    uid: str | None = Field(default=None, max_length=128)
    first_name: str | None = Field(default=None, alias="firstName", max_length=100)
    last_name: str | None = Field(default=None, alias="lastName", max_length=100)
    photo_url: str | None = Field(default=None, alias="photoURL", max_length=2048)


@admins_router.post("/add-admin")
async def add_admin(request: Request, payload: AddAdminPayload):
    """Promote an email to admin, creating the identity when needed (idempotent)."""
    caller = require_action(request, Action.PROMOTE_ADMIN)
    # Directory calls are synchronous network I/O; keep them off the event loop.
    profile = await asyncio.to_thread(
        get_directory().promote_to_admin,
        payload.email,
        payload.first_name,
        payload.last_name,
        payload.photo_url,
    )
    logger.info("Admin added uid=%s by=%s", profile.uid[-6:], caller.uid[-6:])
    return json_private(profile.to_json())


@admins_router.post("/remove-admin")
async def remove_admin(request: Request, payload: RemoveAdminPayload):
    """Demote an admin back to `user`.

    The body names the target by `uid`; an `email` is accepted as well and
    translated to a uid first.
    """
    require_action(request, Action.DEMOTE_ADMIN)
    directory = get_directory()
    uid = payload.uid
    if not uid:
        if not payload.email:
            raise InvalidRequest("uid_or_email_required")
        uid = await asyncio.to_thread(directory.resolve_uid, payload.email)
    profile = await asyncio.to_thread(directory.demote_from_admin, uid)
    return json_private({"uid": profile.uid, "role": profile.role.value})


@admins_router.post("/update-admin")
async def update_admin(request: Request, payload: UpdateAdminPayload):
    require_action(request, Action.UPDATE_ADMIN)
    profile = await asyncio.to_thread(
        get_directory().update_admin_profile,
        payload.uid,
        payload.first_name,
        payload.last_name,
        payload.photo_url,
    )
    return json_private(profile.to_json())


@admins_router.get("/admin-users")
async def admin_users(request: Request):
    require_action(request, Action.LIST_ADMINS)
    admins = await asyncio.to_thread(get_directory().list_admins)
    return json_private([p.to_json() for p in admins])


@admins_router.get("/super-admin")
async def super_admin(request: Request):
    """Return the first identity holding `sysadmin` as `{uid, email}`."""
    require_action(request, Action.VIEW_SUPER_ADMIN)
    found = await asyncio.to_thread(get_directory().super_admins)
    if not found:
        raise NotFound("super_admin_not_found")
    return json_private({"uid": found[0].uid, "email": found[0].email})
