"""
Employee Registry: create/list/get/delete and payload validation.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from backend.identity_access.errors import InvalidRequest, NotFound
from backend.staff.registry import EmployeeRegistry, MemoryEmployeeRepo


def _clock():
    return datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def registry() -> EmployeeRegistry:
    return EmployeeRegistry(MemoryEmployeeRepo(), clock=_clock)


def test_create_then_get_returns_input_fields(registry):
    rec = registry.create_employee(
        created_by="uid-admin", role="Engineer", first_name="Ada", last_name="Lovelace", email="Ada@Example.com"
    )
    got = registry.get_employee(rec.id)

    assert got == rec
    assert got.name == "Ada Lovelace"
    assert got.email == "ada@example.com"
    assert got.role == "Engineer"
    assert got.created_by == "uid-admin"
    assert got.created_at == "2024-06-01T09:30:00+00:00"
    assert got.id


def test_create_name_age_shape(registry):
    rec = registry.create_employee(created_by="uid-admin", role="Designer", name=" Grace ", age=37)
    assert (rec.name, rec.age, rec.role) == ("Grace", "37", "Designer")
    assert rec.first_name is None and rec.email is None
    body = rec.to_json()
    assert body["addedBy"] == "uid-admin"
    assert body["createdAt"] == "2024-06-01T09:30:00+00:00"


def test_free_form_age_is_kept(registry):
    rec = registry.create_employee(created_by="uid-admin", role="Lead", name="Linus", age="Senior")
    assert rec.age == "Senior"


@pytest.mark.parametrize(
    "kwargs,code",
    [
        ({"name": "Grace", "age": 37}, "role_required"),
        ({"role": "Dev", "name": "Grace"}, "name_age_required"),
        ({"role": "Dev", "age": 30}, "name_age_required"),
        ({"role": "Dev", "first_name": "Ada", "email": "ada@example.com"}, "first_name_last_name_email_required"),
        ({"role": "Dev", "first_name": "Ada", "last_name": "L", "email": "nope"}, "invalid_email"),
        ({"role": "Dev", "name": "Grace", "age": -3}, "invalid_age"),
        ({"role": "Dev", "name": "x" * 201, "age": 30}, "field_too_long"),
        ({"role": True, "name": "Grace", "age": 30}, "invalid_field_type"),
    ],
)
def test_create_rejects_invalid_payloads(registry, kwargs, code):
    with pytest.raises(InvalidRequest) as excinfo:
        registry.create_employee(created_by="uid-admin", **kwargs)
    assert excinfo.value.code == code
    assert registry.list_employees() == []


def test_create_requires_creator(registry):
    with pytest.raises(InvalidRequest):
        registry.create_employee(created_by="", role="Dev", name="Grace", age=30)


def test_list_empty_is_empty_list(registry):
    assert registry.list_employees() == []


def test_list_filters_by_creator(registry):
    a = registry.create_employee(created_by="uid-a", role="Dev", name="One", age=30)
    registry.create_employee(created_by="uid-b", role="Dev", name="Two", age=31)

    assert len(registry.list_employees()) == 2
    assert registry.list_employees(added_by="uid-a") == [a]
    assert registry.list_employees(added_by="  ") == registry.list_employees()


def test_delete_then_get_is_not_found(registry):
    rec = registry.create_employee(created_by="uid-a", role="Dev", name="One", age=30)
    assert registry.delete_employee(rec.id) is True
    with pytest.raises(NotFound) as excinfo:
        registry.get_employee(rec.id)
    assert excinfo.value.code == "employee_not_found"


def test_delete_missing_id_is_a_noop(registry):
    assert registry.delete_employee("does-not-exist") is False


def test_blank_id_is_rejected(registry):
    with pytest.raises(InvalidRequest):
        registry.get_employee("  ")
    with pytest.raises(InvalidRequest):
        registry.delete_employee("")
