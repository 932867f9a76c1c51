"""
Role policy: the single place that decides who may do what.

Why:
    Route handlers used to repeat `role in (...)` checks with subtle drift.
    All comparisons now go through `authorize`, a pure lookup over the closed
    role enumeration. No I/O, no state.

Ordering:
    user < admin < sysadmin. An action is allowed when the caller's role is
    at least the minimum role listed in `REQUIRED_ROLE`.
"""
from __future__ import annotations

from enum import Enum
from typing import Mapping

from .domain import Role
from .errors import Forbidden


class Action(str, Enum):
    LOGIN = "login"
    LIST_ADMINS = "list_admins"
    VIEW_SUPER_ADMIN = "view_super_admin"
    PROMOTE_ADMIN = "promote_admin"
    DEMOTE_ADMIN = "demote_admin"
    UPDATE_ADMIN = "update_admin"
    CREATE_EMPLOYEE = "create_employee"
    LIST_EMPLOYEES = "list_employees"
    VIEW_EMPLOYEE = "view_employee"
    DELETE_EMPLOYEE = "delete_employee"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


REQUIRED_ROLE: Mapping[Action, Role] = {
    Action.LOGIN: Role.ADMIN,
    Action.LIST_ADMINS: Role.SYSADMIN,
    Action.VIEW_SUPER_ADMIN: Role.SYSADMIN,
    Action.PROMOTE_ADMIN: Role.SYSADMIN,
    Action.DEMOTE_ADMIN: Role.SYSADMIN,
    Action.UPDATE_ADMIN: Role.SYSADMIN,
    Action.CREATE_EMPLOYEE: Role.ADMIN,
    Action.LIST_EMPLOYEES: Role.ADMIN,
    Action.VIEW_EMPLOYEE: Role.ADMIN,
    Action.DELETE_EMPLOYEE: Role.SYSADMIN,
}


def authorize(role: object, action: Action) -> Decision:
    """Decide whether `role` may perform `action`.

    Total over its input: anything that is not a known role counts as `user`.
    """
    caller = Role.parse(role)
    required = REQUIRED_ROLE[Action(action)]
    return Decision.ALLOW if caller.at_least(required) else Decision.DENY


def require(role: object, action: Action) -> Role:
    """Return the parsed role or raise `Forbidden` when the policy denies."""
    if authorize(role, action) is Decision.DENY:
        raise Forbidden("insufficient_role")
    return Role.parse(role)


__all__ = ["Action", "Decision", "REQUIRED_ROLE", "authorize", "require"]
