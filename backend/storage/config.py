"""
Centralized record store configuration.

Intent:
    Provide a single source of truth for which record store backs the admin
    profile mirror and the employee registry, and how to reach it. Prevents
    drift between the identity and staff contexts and enables simple testing.

Behavior:
    - RECORD_STORE_BACKEND selects `memory` (default) or `db` (Postgres).
    - get_database_dsn() reads STAFFDESK_DATABASE_URL, then DATABASE_URL,
      then SUPABASE_DB_URL.
    - Every connection is bounded by DB_CONNECT_TIMEOUT_SECONDS and
      DB_STATEMENT_TIMEOUT_MS.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


RECORD_STORE_BACKEND_DEFAULT = "memory"


def record_store_backend() -> str:
    value = (os.getenv("RECORD_STORE_BACKEND") or RECORD_STORE_BACKEND_DEFAULT).strip().lower()
    return value if value in {"memory", "db"} else RECORD_STORE_BACKEND_DEFAULT


def get_database_dsn() -> str | None:
    for key in ("STAFFDESK_DATABASE_URL", "DATABASE_URL", "SUPABASE_DB_URL"):
        val = (os.getenv(key) or "").strip()
        if val:
            return val
    return None


def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_connect_timeout_seconds() -> int:
    return _parse_int_env("DB_CONNECT_TIMEOUT_SECONDS", 5, contract_max=60)


def get_statement_timeout_ms() -> int:
    return _parse_int_env("DB_STATEMENT_TIMEOUT_MS", 10_000, contract_max=120_000)


__all__ = [
    "RECORD_STORE_BACKEND_DEFAULT",
    "record_store_backend",
    "get_database_dsn",
    "get_connect_timeout_seconds",
    "get_statement_timeout_ms",
]
