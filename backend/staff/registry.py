"""Employee registry service layer (Clean Architecture boundary).

Why:
    Encapsulates employee use cases (create/list/get/delete) so that web
    adapters remain framework-free and we can unit-test validation logic
    independently of FastAPI. Authorization happens before these calls; the
    registry only records who created a record.

Shapes:
    Two create payloads are accepted: `firstName/lastName/email/role` and
    `name/age/role`. `role` is required in both; `name` is derived from the
    first and last name when absent.

Deletion:
    Deleting an id that does not exist is a no-op, so repeated deletes are
    safe. `delete_employee` reports whether anything was removed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol
from uuid import uuid4
import logging
import re

from backend.identity_access.errors import InvalidRequest, NotFound

logger = logging.getLogger("staffdesk.staff")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class EmployeeRecord:
    id: str
    name: str
    age: Optional[str]
    role: str
    created_by: str
    created_at: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "age": self.age,
            "role": self.role,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "addedBy": self.created_by,
            "createdAt": self.created_at,
        }


class EmployeeRepoProtocol(Protocol):
    def insert(self, record: EmployeeRecord) -> EmployeeRecord:
        ...

    def get(self, employee_id: str) -> Optional[EmployeeRecord]:
        ...

    def list(self, *, added_by: Optional[str] = None) -> List[EmployeeRecord]:
        ...

    def delete(self, employee_id: str) -> bool:
        ...


@dataclass
class MemoryEmployeeRepo:
    rows: Dict[str, EmployeeRecord] = field(default_factory=dict)

    def insert(self, record: EmployeeRecord) -> EmployeeRecord:
        self.rows[record.id] = record
        return record

    def get(self, employee_id: str) -> Optional[EmployeeRecord]:
        return self.rows.get(employee_id)

    def list(self, *, added_by: Optional[str] = None) -> List[EmployeeRecord]:
        items = list(self.rows.values())
        if added_by:
            items = [r for r in items if r.created_by == added_by]
        return items

    def delete(self, employee_id: str) -> bool:
        return self.rows.pop(employee_id, None) is not None


def _clean(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRequest("invalid_field_type")
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        raise InvalidRequest("invalid_field_type")
    trimmed = value.strip()
    return trimmed or None


def _normalize_age(value: object) -> Optional[str]:
    # Either a numeric age or a free-form title such as "Senior"
    age = _clean(value)
    if age is None:
        return None
    if age.lstrip("-").isdigit() and int(age) < 0:
        raise InvalidRequest("invalid_age")
    return age


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmployeeRegistry:
    """Use cases for employee records (framework-independent)."""

    def __init__(self, repo: EmployeeRepoProtocol, *, clock: Callable[[], datetime] | None = None) -> None:
        self.repo = repo
        self._clock = clock or _utcnow

    def create_employee(
        self,
        *,
        created_by: str,
        role: object,
        name: object = None,
        age: object = None,
        first_name: object = None,
        last_name: object = None,
        email: object = None,
    ) -> EmployeeRecord:
        if not created_by:
            raise InvalidRequest("creator_required")
        role_s = _clean(role)
        if role_s is None:
            raise InvalidRequest("role_required")
        first = _clean(first_name)
        last = _clean(last_name)
        mail = _clean(email)
        name_s = _clean(name)
        age_s = _normalize_age(age)

        if first or last or mail:
            if not (first and last and mail):
                raise InvalidRequest("first_name_last_name_email_required")
            if not _EMAIL_RE.match(mail):
                raise InvalidRequest("invalid_email")
            mail = mail.lower()
            name_s = name_s or f"{first} {last}"
        elif name_s is None or age_s is None:
            raise InvalidRequest("name_age_required")

        if len(name_s) > 200 or len(role_s) > 100:
            raise InvalidRequest("field_too_long")

        record = EmployeeRecord(
            id=str(uuid4()),
            name=name_s,
            age=age_s,
            role=role_s,
            first_name=first,
            last_name=last,
            email=mail,
            created_by=created_by,
            created_at=self._clock().isoformat(),
        )
        stored = self.repo.insert(record)
        logger.info("Employee created id=%s by=%s", stored.id[-6:], created_by[-6:])
        return stored

    def list_employees(self, *, added_by: Optional[str] = None) -> List[EmployeeRecord]:
        added_by = (added_by or "").strip() or None
        return self.repo.list(added_by=added_by)

    def get_employee(self, employee_id: str) -> EmployeeRecord:
        employee_id = (employee_id or "").strip()
        if not employee_id:
            raise InvalidRequest("id_required")
        record = self.repo.get(employee_id)
        if record is None:
            raise NotFound("employee_not_found")
        return record

    def delete_employee(self, employee_id: str) -> bool:
        employee_id = (employee_id or "").strip()
        if not employee_id:
            raise InvalidRequest("id_required")
        removed = self.repo.delete(employee_id)
        if removed:
            logger.info("Employee deleted id=%s", employee_id[-6:])
        return removed
