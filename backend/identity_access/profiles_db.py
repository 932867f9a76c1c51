"""
Postgres-backed admin profile mirror.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- `upsert` keys on uid and keeps the original `created_at`, so re-promoting
  the same identity never produces a second row.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from backend.storage.config import get_database_dsn
from backend.storage.pg import connect, require_psycopg

from .domain import Role
from .profiles import AdminProfile

SCHEMA_SQL = """
create table if not exists public.admin_profiles (
    uid text primary key,
    email text not null,
    first_name text not null,
    last_name text not null,
    photo_url text not null default '',
    role text not null default 'user' check (role in ('user', 'admin', 'sysadmin')),
    created_at timestamptz not null default now()
);
create index if not exists admin_profiles_role_idx on public.admin_profiles (role);
"""

_COLUMNS = """
    uid, email, first_name, last_name, photo_url, role,
    to_char(created_at at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')
"""


def _row_to_profile(row: Tuple) -> AdminProfile:
    return AdminProfile(
        uid=row[0],
        email=row[1],
        first_name=row[2],
        last_name=row[3],
        photo_url=row[4] or "",
        role=Role.parse(row[5]),
        created_at=row[6],
    )


class DBProfileStore:
    def __init__(self, dsn: Optional[str] = None) -> None:
        require_psycopg("DBProfileStore")
        self._dsn = dsn or get_database_dsn() or ""
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBProfileStore")

    def ensure_schema(self) -> None:
        with connect(self._dsn, op="schema") as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()

    def get(self, uid: str) -> Optional[AdminProfile]:
        with connect(self._dsn, op="get_profile") as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COLUMNS} from public.admin_profiles where uid = %s", (uid,))
                row = cur.fetchone()
        return _row_to_profile(row) if row else None

    def upsert(self, profile: AdminProfile) -> AdminProfile:
        with connect(self._dsn, op="upsert_profile") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    insert into public.admin_profiles (uid, email, first_name, last_name, photo_url, role, created_at)
                    values (%s, %s, %s, %s, %s, %s, %s::timestamptz)
                    on conflict (uid) do update
                       set email = excluded.email,
                           first_name = excluded.first_name,
                           last_name = excluded.last_name,
                           photo_url = excluded.photo_url,
                           role = excluded.role
                    returning {_COLUMNS}
                    """,
                    (
                        profile.uid,
                        profile.email,
                        profile.first_name,
                        profile.last_name,
                        profile.photo_url,
                        profile.role.value,
                        profile.created_at,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        return _row_to_profile(row)

    def update_attributes(self, uid: str, *, first_name: str, last_name: str, photo_url: str) -> Optional[AdminProfile]:
        with connect(self._dsn, op="update_profile") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    update public.admin_profiles
                       set first_name = %s, last_name = %s, photo_url = %s
                     where uid = %s
                    returning {_COLUMNS}
                    """,
                    (first_name, last_name, photo_url, uid),
                )
                row = cur.fetchone()
            conn.commit()
        return _row_to_profile(row) if row else None

    def set_role(self, uid: str, role: Role) -> bool:
        with connect(self._dsn, op="set_profile_role") as conn:
            with conn.cursor() as cur:
                cur.execute("update public.admin_profiles set role = %s where uid = %s", (role.value, uid))
                changed = (cur.rowcount or 0) > 0
            conn.commit()
        return changed

    def list_by_role(self, role: Role) -> List[AdminProfile]:
        with connect(self._dsn, op="list_profiles") as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_COLUMNS} from public.admin_profiles where role = %s order by created_at",
                    (role.value,),
                )
                rows = cur.fetchall() or []
        return [_row_to_profile(r) for r in rows]

    def list_all(self) -> List[AdminProfile]:
        with connect(self._dsn, op="list_profiles") as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_COLUMNS} from public.admin_profiles order by created_at")
                rows = cur.fetchall() or []
        return [_row_to_profile(r) for r in rows]
