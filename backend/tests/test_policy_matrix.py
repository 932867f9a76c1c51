"""
Role policy: exhaustive role × action matrix.

`authorize(role, action)` allows exactly when the caller's role is at least
the required role for the action, and denies everything else, including
unknown or missing role values.
"""
from __future__ import annotations

import pytest

from backend.identity_access.domain import Role
from backend.identity_access.errors import Forbidden
from backend.identity_access.policy import REQUIRED_ROLE, Action, Decision, authorize, require


ADMIN_ACTIONS = {Action.LOGIN, Action.CREATE_EMPLOYEE, Action.LIST_EMPLOYEES, Action.VIEW_EMPLOYEE}
SYSADMIN_ACTIONS = set(Action) - ADMIN_ACTIONS

EXPECTED = {
    Role.USER: set(),
    Role.ADMIN: ADMIN_ACTIONS,
    Role.SYSADMIN: set(Action),
}


def test_required_role_table_covers_every_action():
    assert set(REQUIRED_ROLE) == set(Action)
    assert len(Action) == 10


@pytest.mark.parametrize("role", list(Role))
@pytest.mark.parametrize("action", list(Action))
def test_authorize_matrix(role: Role, action: Action):
    expected = Decision.ALLOW if action in EXPECTED[role] else Decision.DENY
    assert authorize(role, action) is expected


@pytest.mark.parametrize("action", sorted(SYSADMIN_ACTIONS, key=lambda a: a.value))
def test_admin_only_actions_need_sysadmin(action: Action):
    assert REQUIRED_ROLE[action] is Role.SYSADMIN


@pytest.mark.parametrize("raw", [None, "", "root", "superuser", 42, ["admin"]])
def test_unknown_roles_are_treated_as_user(raw):
    for action in Action:
        assert authorize(raw, action) is Decision.DENY


def test_role_strings_are_accepted_case_insensitively():
    assert authorize("SysAdmin", Action.DELETE_EMPLOYEE) is Decision.ALLOW
    assert authorize(" admin ", Action.CREATE_EMPLOYEE) is Decision.ALLOW


def test_require_raises_forbidden_with_stable_code():
    with pytest.raises(Forbidden) as excinfo:
        require(Role.ADMIN, Action.DELETE_EMPLOYEE)
    assert excinfo.value.code == "insufficient_role"
    assert excinfo.value.status_code == 403


def test_require_returns_parsed_role_on_allow():
    assert require("sysadmin", Action.PROMOTE_ADMIN) is Role.SYSADMIN


def test_role_ordering_is_total():
    assert Role.SYSADMIN.at_least(Role.ADMIN)
    assert Role.ADMIN.at_least(Role.USER)
    assert not Role.USER.at_least(Role.ADMIN)
    assert Role.highest(["offline_access", "admin", "uma_authorization"]) is Role.ADMIN
    assert Role.highest(["admin", "sysadmin"]) is Role.SYSADMIN
    assert Role.highest([]) is Role.USER
