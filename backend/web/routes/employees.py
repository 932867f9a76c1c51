"""
Employee API routes.

Permissions:
    Create/list/view require `admin` (sysadmin passes through the ordering);
    delete requires `sysadmin`.

Caching:
    Every response carries `Cache-Control: private, no-store`, including the
    empty 204 of a delete.
"""
from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from backend.identity_access.policy import Action

from ..wiring import get_registry
from .security import json_private, private_headers, require_action

employees_router = APIRouter(tags=["Employees"])


class EmployeeCreatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    role: str | None = Field(default=None)
    name: str | None = Field(default=None)
    age: str | int | None = Field(default=None)
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    email: str | None = Field(default=None)


@employees_router.post("/api/employees")
async def create_employee(request: Request, payload: EmployeeCreatePayload):
    """Create an employee record attributed to the caller.

    Accepts `{firstName, lastName, email, role}` or `{name, age, role}`.
    """
    caller = require_action(request, Action.CREATE_EMPLOYEE)
    record = await asyncio.to_thread(
        get_registry().create_employee,
        created_by=caller.uid,
        role=payload.role,
        name=payload.name,
        age=payload.age,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
    )
    return json_private(record.to_json(), status_code=201)


@employees_router.get("/api/employees")
async def list_employees(request: Request, addedBy: str | None = None):  # noqa: N803 - query name is part of the API
    require_action(request, Action.LIST_EMPLOYEES)
    records = await asyncio.to_thread(get_registry().list_employees, added_by=addedBy)
    return json_private([r.to_json() for r in records])


@employees_router.get("/api/employees/{employee_id}")
async def get_employee(request: Request, employee_id: str):
    require_action(request, Action.VIEW_EMPLOYEE)
    record = await asyncio.to_thread(get_registry().get_employee, employee_id)
    return json_private(record.to_json())


@employees_router.delete("/delete-employee/{employee_id}")
async def delete_employee(request: Request, employee_id: str):
    """Delete an employee record; absent ids are treated as already deleted."""
    require_action(request, Action.DELETE_EMPLOYEE)
    await asyncio.to_thread(get_registry().delete_employee, employee_id)
    return Response(status_code=204, headers=private_headers())
