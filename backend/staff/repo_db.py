"""
Postgres-backed repository for employee records.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Ids are generated by the registry, stored as text so unknown or malformed
  ids simply miss instead of raising cast errors.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from backend.storage.config import get_database_dsn
from backend.storage.pg import connect, require_psycopg

from .registry import EmployeeRecord

SCHEMA_SQL = """
create table if not exists public.employees (
    id text primary key,
    name text not null,
    age text,
    role text not null,
    first_name text,
    last_name text,
    email text,
    created_by text not null,
    created_at timestamptz not null default now()
);
create index if not exists employees_created_by_idx on public.employees (created_by);
"""

_COLUMNS = """
    id, name, age, role, first_name, last_name, email, created_by,
    to_char(created_at at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')
"""


def _row_to_record(row: Tuple) -> EmployeeRecord:
    return EmployeeRecord(
        id=row[0],
        name=row[1],
        age=row[2],
        role=row[3],
        first_name=row[4],
        last_name=row[5],
        email=row[6],
        created_by=row[7],
        created_at=row[8],
    )


class DBEmployeeRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        require_psycopg("DBEmployeeRepo")
        self._dsn = dsn or get_database_dsn() or ""
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBEmployeeRepo")

    def ensure_schema(self) -> None:
        with connect(self._dsn, op="schema") as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()

    def insert(self, record: EmployeeRecord) -> EmployeeRecord:
        with connect(self._dsn, op="insert_employee") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.employees
                        (id, name, age, role, first_name, last_name, email, created_by, created_at)
                    values (%s, %s, %s, %s, %s, %s, %s, %s, %s::timestamptz)
                    returning {_COLUMNS}
                    """,
                    (
                        record.id,
                        record.name,
                        record.age,
                        record.role,
                        record.first_name,
                        record.last_name,
                        record.email,
                        record.created_by,
                        record.created_at,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        return _row_to_record(row)

    def get(self, employee_id: str) -> Optional[EmployeeRecord]:
        with connect(self._dsn, op="get_employee") as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COLUMNS} from public.employees where id = %s", (employee_id,))
                row = cur.fetchone()
        return _row_to_record(row) if row else None

    def list(self, *, added_by: Optional[str] = None) -> List[EmployeeRecord]:
        with connect(self._dsn, op="list_employees") as conn:
            with conn.cursor() as cur:
                if added_by:
                    cur.execute(
                        f"select {_COLUMNS} from public.employees where created_by = %s order by created_at",
                        (added_by,),
                    )
                else:
                    cur.execute(f"select {_COLUMNS} from public.employees order by created_at")
                rows = cur.fetchall() or []
        return [_row_to_record(r) for r in rows]

    def delete(self, employee_id: str) -> bool:
        with connect(self._dsn, op="delete_employee") as conn:
            with conn.cursor() as cur:
                cur.execute("delete from public.employees where id = %s", (employee_id,))
                removed = (cur.rowcount or 0) > 0
            conn.commit()
        return removed
